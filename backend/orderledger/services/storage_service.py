"""
File storage for payment proofs
Project: Order Ledger

Uploaded files are validated, then written with aiofiles under
settings.upload_dir using the key layout
`<client-slug>/<env>/<category>/<YYYY-MM-DD>/<timestamp>_<filename>`.
"""

import logging
import os
import re
from datetime import datetime, timezone
from typing import Optional

import aiofiles
from fastapi import UploadFile

from orderledger.core.config import settings
from orderledger.core.exceptions import BadRequestError

logger = logging.getLogger(__name__)

TRANSACTIONS = "transactions"
ADVANCED_PAYMENTS = "advanced-payments"


def slugify(value: str) -> str:
    """Lowercase, dash-separated, ASCII-only."""
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug or "client"


def safe_filename(filename: str) -> str:
    base = os.path.basename(filename or "upload")
    return re.sub(r"[^A-Za-z0-9._-]+", "_", base) or "upload"


def build_key(client_name: str, category: str, filename: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return "/".join([
        slugify(client_name),
        settings.storage_env_segment,
        category,
        now.strftime("%Y-%m-%d"),
        f"{int(now.timestamp() * 1000)}_{safe_filename(filename)}",
    ])


class StorageService:
    """Local filesystem storage."""

    def __init__(self, root: Optional[str] = None) -> None:
        self.root = root or settings.upload_dir

    def validate(self, content_type: Optional[str], size: int) -> None:
        """
        Raises:
            BadRequestError: unsupported type or file too large
        """
        if content_type not in settings.upload_allowed_types:
            raise BadRequestError(
                f"Unsupported file type '{content_type}'",
                extra={"allowed": settings.upload_allowed_types},
            )
        if size > settings.upload_max_bytes:
            raise BadRequestError(
                f"File too large ({size} bytes, max {settings.upload_max_bytes})"
            )
        if size == 0:
            raise BadRequestError("Uploaded file is empty")

    async def save_upload(self, client_name: str, category: str, upload: UploadFile) -> str:
        """
        Store an uploaded file and return its key.

        The body is read fully into memory (bounded by upload_max_bytes).
        """
        content = await upload.read(settings.upload_max_bytes + 1)
        self.validate(upload.content_type, len(content))

        key = build_key(client_name, category, upload.filename or "upload")
        path = os.path.join(self.root, *key.split("/"))
        os.makedirs(os.path.dirname(path), exist_ok=True)

        async with aiofiles.open(path, "wb") as f:
            await f.write(content)

        logger.info("Stored upload %s (%s bytes)", key, len(content))
        return key

    def path_for(self, key: str) -> str:
        return os.path.join(self.root, *key.split("/"))


storage_service = StorageService()
