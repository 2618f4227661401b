"""
Service layer for Client
Project: Order Ledger

Business logic for client management:
- Sequential client numbers
- Soft delete
- Duplicate email detection before insert
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.core.exceptions import ConflictError, DuplicateError, NotFoundError
from orderledger.models import Client, Order
from orderledger.models.order import OrderStatus
from orderledger.schemas.client import ClientCreate, ClientUpdate
from orderledger.services.sequence_service import CLIENT_NO, SequenceService, sequence_service

logger = logging.getLogger(__name__)


class ClientService:
    """
    CRUD on clients.

    Methods flush but do not commit; the router owns the transaction.
    """

    def __init__(self, sequences: SequenceService = sequence_service) -> None:
        self.sequences = sequences

    async def get_all(
        self,
        db: AsyncSession,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        include_inactive: bool = False,
    ) -> tuple[list[Client], int]:
        """
        Paginated client list, newest client number first.

        Args:
            search: Matches name, alias, email or mobile (case-insensitive),
                or the exact client number when numeric
        """
        conditions = []

        if not include_inactive:
            conditions.append(Client.is_active.is_(True))

        if search:
            term = f"%{search.strip()}%"
            search_condition = [
                Client.name.ilike(term),
                Client.alias.ilike(term),
                Client.email.ilike(term),
                Client.mobile.ilike(term),
            ]
            if search.strip().isdigit():
                search_condition.append(Client.client_no == int(search.strip()))
            conditions.append(or_(*search_condition))

        query = select(Client).order_by(Client.client_no.desc())
        count_query = select(func.count()).select_from(Client)
        if conditions:
            query = query.where(*conditions)
            count_query = count_query.where(*conditions)

        result = await db.execute(query.offset((page - 1) * limit).limit(limit))
        clients = list(result.scalars().all())

        total = (await db.execute(count_query)).scalar() or 0

        logger.info(
            "Fetched %s of %s clients (page %s, search=%r)",
            len(clients), total, page, search,
        )
        return clients, total

    async def get_by_id(
        self,
        db: AsyncSession,
        client_id: uuid.UUID,
        include_inactive: bool = False,
    ) -> Client:
        """
        Raises:
            NotFoundError: unknown or soft-deleted client
        """
        query = select(Client).where(Client.id == client_id)
        if not include_inactive:
            query = query.where(Client.is_active.is_(True))

        client = (await db.execute(query)).scalar_one_or_none()
        if client is None:
            logger.warning("Client not found: %s", client_id)
            raise NotFoundError(f"Client {client_id} not found")
        return client

    async def get_by_client_no(self, db: AsyncSession, client_no: int) -> Client:
        result = await db.execute(
            select(Client).where(Client.client_no == client_no, Client.is_active.is_(True))
        )
        client = result.scalar_one_or_none()
        if client is None:
            raise NotFoundError(f"Client #{client_no} not found")
        return client

    async def create(self, db: AsyncSession, client_data: ClientCreate) -> Client:
        """
        Create a client with the next client number.

        Raises:
            DuplicateError: email already used by another client
        """
        if client_data.email:
            await self._ensure_email_free(db, client_data.email)

        client = Client(**client_data.model_dump(mode="json"))
        client.client_no = await self.sequences.next_value(db, CLIENT_NO)

        try:
            db.add(client)
            await db.flush()
        except IntegrityError as e:
            logger.error("Integrity error creating client %s: %s", client_data.name, e)
            raise DuplicateError("A client with the same unique data already exists")

        logger.info("Created client #%s - %s", client.client_no, client.name)
        return client

    async def update(
        self,
        db: AsyncSession,
        client_id: uuid.UUID,
        client_data: ClientUpdate,
    ) -> Client:
        """
        Partial update.

        Raises:
            NotFoundError: unknown client
            DuplicateError: email already used by another client
        """
        client = await self.get_by_id(db, client_id)
        changes = client_data.model_dump(mode="json", exclude_unset=True)

        if changes.get("email") and changes["email"] != client.email:
            await self._ensure_email_free(db, changes["email"], exclude_id=client.id)

        for field, value in changes.items():
            setattr(client, field, value)

        try:
            await db.flush()
        except IntegrityError as e:
            logger.error("Integrity error updating client %s: %s", client_id, e)
            raise DuplicateError("A client with the same unique data already exists")

        logger.info("Updated client #%s (fields: %s)", client.client_no, ", ".join(changes) or "-")
        return client

    async def delete(self, db: AsyncSession, client_id: uuid.UUID) -> None:
        """
        Soft delete.

        Raises:
            ConflictError: the client still has open orders
        """
        client = await self.get_by_id(db, client_id)

        open_orders = (
            await db.execute(
                select(func.count()).select_from(Order).where(
                    Order.client_id == client.id,
                    Order.status.not_in([OrderStatus.CLOSED.value, OrderStatus.CANCELLED.value]),
                    or_(
                        Order.status != OrderStatus.COMPLETED.value,
                        Order.remaining_amount > 0,
                    ),
                )
            )
        ).scalar() or 0
        if open_orders:
            raise ConflictError(
                f"Client #{client.client_no} has {open_orders} open orders and cannot be deleted",
                extra={"open_orders": open_orders},
            )

        client.is_active = False
        await db.flush()
        logger.info("Soft-deleted client #%s", client.client_no)

    async def _ensure_email_free(
        self,
        db: AsyncSession,
        email: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(Client).where(func.lower(Client.email) == email.lower())
        if exclude_id is not None:
            query = query.where(Client.id != exclude_id)
        existing = (await db.execute(query)).scalar_one_or_none()
        if existing:
            logger.warning("Duplicate client email %s (existing: %s)", email, existing.id)
            raise DuplicateError(f"Email '{email}' is already registered to client #{existing.client_no}")


client_service = ClientService()
