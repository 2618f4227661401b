"""
Shared response helpers
Project: Order Ledger
"""

from typing import Optional

from fastapi import Response
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError


def pdf_response(content: bytes, filename: str, headers: Optional[dict[str, str]] = None) -> Response:
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{filename}"', **(headers or {})},
    )


def build_form_model(model: type[BaseModel], **fields) -> BaseModel:
    """
    Validate multipart form fields into `model`, reporting errors as a
    regular 422 instead of an unhandled exception.
    """
    try:
        return model(**{k: v for k, v in fields.items() if v is not None})
    except ValidationError as e:
        raise RequestValidationError(e.errors())
