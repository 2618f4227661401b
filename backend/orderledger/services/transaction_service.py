"""
Service layer for Transaction
Project: Order Ledger

Payment recording against an order and its reversal. Each mutation locks
the order, updates its balance and txn_status and commits in a single
transaction; any failure rolls both writes back.
"""

import logging
import uuid
from decimal import Decimal
from typing import Optional

from fastapi import UploadFile
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.core.exceptions import BadRequestError, NotFoundError
from orderledger.models import Client, Order, Transaction
from orderledger.models.order import OrderStatus
from orderledger.models.transaction import TransactionType
from orderledger.schemas.transaction import TransactionCreate
from orderledger.services import ledger_rules
from orderledger.services.queries import get_order_for_update
from orderledger.services.storage_service import TRANSACTIONS, StorageService, storage_service

logger = logging.getLogger(__name__)


class TransactionService:

    def __init__(self, storage: StorageService = storage_service) -> None:
        self.storage = storage

    async def paid_total(self, db: AsyncSession, order_id: uuid.UUID) -> Decimal:
        """Sum of all transactions recorded against the order."""
        result = await db.execute(
            select(func.coalesce(func.sum(Transaction.amount), 0)).where(
                Transaction.order_id == order_id
            )
        )
        return ledger_rules.money(result.scalar() or 0)

    async def create(
        self,
        db: AsyncSession,
        data: TransactionCreate,
        proof: Optional[UploadFile] = None,
    ) -> Transaction:
        """
        Record a payment.

        Steps:
        1. Lock the order and check it belongs to the client
        2. Reject amounts above the outstanding balance
        3. Store the optional proof of payment
        4. Insert the transaction, update remaining_amount and txn_status
        5. Commit

        Raises:
            NotFoundError: unknown client or order
            BadRequestError: overpayment, cancelled order, client mismatch
        """
        try:
            client = await db.get(Client, data.client_id)
            if client is None:
                raise NotFoundError(f"Client {data.client_id} not found")

            order = await get_order_for_update(db, data.order_id)
            if order.client_id != client.id:
                raise BadRequestError(
                    f"Order #{order.order_no} does not belong to client #{client.client_no}"
                )
            if data.transaction_type == TransactionType.ADVANCED_PAYMENT:
                raise BadRequestError("Advance allocations are recorded through /advanced-payment")
            if order.status == OrderStatus.CANCELLED.value:
                raise BadRequestError(f"Order #{order.order_no} is cancelled")

            already_paid = await self.paid_total(db, order.id)
            ledger_rules.check_payment(order, data.amount, already_paid)

            media_key = None
            if proof is not None:
                media_key = await self.storage.save_upload(client.name, TRANSACTIONS, proof)

            txn = Transaction(
                client_id=client.id,
                order_id=order.id,
                amount=data.amount,
                transaction_date=data.transaction_date,
                transaction_type=data.transaction_type.value,
                payment_method=data.payment_method.value if data.payment_method else None,
                txn_number=data.txn_number,
                remarks=data.remarks,
                media_file_url=media_key,
            )
            db.add(txn)
            ledger_rules.apply_payment(order, data.amount)

            await db.flush()
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Recorded payment %s on order #%s (remaining %s, txn_status %s)",
            txn.amount, order.order_no, order.remaining_amount, order.txn_status,
        )
        return txn

    async def get_by_id(self, db: AsyncSession, transaction_id: uuid.UUID) -> Transaction:
        txn = await db.get(Transaction, transaction_id)
        if txn is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return txn

    async def list_by_order(self, db: AsyncSession, order_id: uuid.UUID) -> tuple[Order, list[Transaction]]:
        order = await db.get(Order, order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        result = await db.execute(
            select(Transaction)
            .where(Transaction.order_id == order_id)
            .order_by(Transaction.transaction_date.asc(), Transaction.created_at.asc())
        )
        return order, list(result.scalars().all())

    async def delete(self, db: AsyncSession, transaction_id: uuid.UUID) -> Order:
        """
        Remove a payment and restore the order balance.

        Raises:
            NotFoundError: unknown transaction
            BadRequestError: advance-derived transaction
            ConflictError: the order balance no longer matches its payments
        """
        try:
            txn = await self.get_by_id(db, transaction_id)
            if txn.is_advance_allocation:
                raise BadRequestError(
                    "Transactions created from an advanced payment cannot be deleted",
                    extra={"advanced_payment_id": str(txn.advanced_payment_id)},
                )

            order = await get_order_for_update(db, txn.order_id)
            ledger_rules.reverse_payment(order, txn.amount)
            await db.delete(txn)

            await db.flush()
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Deleted transaction %s on order #%s (remaining %s, txn_status %s)",
            transaction_id, order.order_no, order.remaining_amount, order.txn_status,
        )
        return order


transaction_service = TransactionService()
