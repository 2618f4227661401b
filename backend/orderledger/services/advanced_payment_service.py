"""
Service layer for advanced payments
Project: Order Ledger

Client prepaid credit: creation (optionally applied to an order straight
away), FIFO auto-allocation against new orders, manual use, refund and
analytics.

Every allocation creates an advance-derived Transaction, decrements the
advance (fully_used at zero), appends a usage entry and lowers the
order's remaining_amount, all in the caller's database transaction.
"""

import logging
import uuid
from decimal import Decimal
from typing import Optional

from fastapi import UploadFile
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.core.exceptions import BadRequestError, NotFoundError
from orderledger.models import AdvancedPayment, AdvancedPaymentUsage, Client, Order, Transaction
from orderledger.models.advanced_payment import AdvancedPaymentStatus
from orderledger.models.order import OrderStatus
from orderledger.models.transaction import TransactionType
from orderledger.schemas.advanced_payment import (
    AdvanceBalance,
    AdvancedPaymentCreate,
    AdvancedPaymentRead,
    AdvancedPaymentUse,
    AllClientsAdvanceAnalytics,
    AllocationRead,
    AllocationResult,
    ClientAdvanceAnalytics,
    ClientAdvanceRow,
)
from orderledger.services import ledger_rules
from orderledger.services.ledger_rules import ZERO, money
from orderledger.services.queries import get_order_for_update
from orderledger.services.storage_service import ADVANCED_PAYMENTS, StorageService, storage_service

logger = logging.getLogger(__name__)


class AdvancedPaymentService:

    def __init__(self, storage: StorageService = storage_service) -> None:
        self.storage = storage

    # ------------------------------------------------------------
    # Allocation core
    # ------------------------------------------------------------

    async def _allocate(
        self,
        db: AsyncSession,
        advance: AdvancedPayment,
        order: Order,
        amount: Decimal,
        txn_suffix: str,
        remarks: str,
    ) -> AllocationRead:
        """Move `amount` of credit from `advance` onto `order`."""
        if amount <= ZERO:
            raise BadRequestError("Allocation amount must be greater than zero")
        if amount > advance.remaining_amount:
            raise BadRequestError(
                f"Allocation {amount} exceeds the advance balance {advance.remaining_amount}"
            )
        if amount > order.remaining_amount:
            raise BadRequestError(
                f"Allocation {amount} exceeds the outstanding amount "
                f"{order.remaining_amount} of order #{order.order_no}"
            )

        txn = Transaction(
            id=uuid.uuid4(),
            client_id=order.client_id,
            order_id=order.id,
            amount=amount,
            transaction_type=TransactionType.ADVANCED_PAYMENT.value,
            payment_method=advance.payment_method,
            txn_number=f"AP-{str(advance.id)[-8:]}-{txn_suffix}",
            remarks=remarks,
            advanced_payment_id=advance.id,
        )
        db.add(txn)
        await db.flush()

        advance.remaining_amount = money(advance.remaining_amount - amount)
        if advance.remaining_amount == ZERO:
            advance.status = AdvancedPaymentStatus.FULLY_USED.value
        advance.usage_history.append(
            AdvancedPaymentUsage(
                order_id=order.id,
                order_no=order.order_no,
                transaction_id=txn.id,
                amount=amount,
                remarks=remarks,
            )
        )

        ledger_rules.apply_payment(order, amount)

        logger.info(
            "Allocated %s from advance %s to order #%s (advance left %s, order left %s)",
            amount, advance.id, order.order_no, advance.remaining_amount, order.remaining_amount,
        )
        return AllocationRead(
            advanced_payment_id=advance.id,
            transaction_id=txn.id,
            order_id=order.id,
            order_no=order.order_no,
            amount=amount,
        )

    async def _active_advances_for_update(
        self,
        db: AsyncSession,
        client_id: uuid.UUID,
    ) -> list[AdvancedPayment]:
        """Client's usable advances, oldest first, locked."""
        result = await db.execute(
            select(AdvancedPayment)
            .where(
                AdvancedPayment.client_id == client_id,
                AdvancedPayment.status == AdvancedPaymentStatus.ACTIVE.value,
                AdvancedPayment.remaining_amount > 0,
            )
            .order_by(AdvancedPayment.payment_date.asc(), AdvancedPayment.created_at.asc())
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def _get_for_update(self, db: AsyncSession, advance_id: uuid.UUID) -> AdvancedPayment:
        result = await db.execute(
            select(AdvancedPayment)
            .where(AdvancedPayment.id == advance_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        advance = result.scalar_one_or_none()
        if advance is None:
            raise NotFoundError(f"Advanced payment {advance_id} not found")
        return advance

    async def auto_allocate(self, db: AsyncSession, order: Order) -> AllocationResult:
        """
        FIFO allocation of the client's credit against `order`.

        Runs in the caller's transaction and does not commit. The order
        must already be locked by the caller.
        """
        if order.remaining_amount <= ZERO or order.status == OrderStatus.CANCELLED.value:
            return AllocationResult()

        advances = await self._active_advances_for_update(db, order.client_id)
        plan = ledger_rules.plan_fifo_allocation(advances, order.remaining_amount)
        by_id = {a.id: a for a in advances}

        allocations = [
            await self._allocate(
                db,
                by_id[step.advance_id],
                order,
                step.amount,
                txn_suffix="AUTO",
                remarks=f"Auto-allocated to order #{order.order_no}",
            )
            for step in plan
        ]
        await db.flush()

        total = money(sum((a.amount for a in allocations), ZERO))
        if allocations:
            logger.info(
                "Auto-allocated %s to order #%s from %s advance(s)",
                total, order.order_no, len(allocations),
            )
        return AllocationResult(total_allocated=total, allocations=allocations)

    async def auto_allocate_committed(self, db: AsyncSession, order_id: uuid.UUID) -> AllocationResult:
        """
        auto_allocate in its own transaction; used as a post-commit hook
        after order creation.
        """
        try:
            order = await get_order_for_update(db, order_id)
            result = await self.auto_allocate(db, order)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return result

    # ------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------

    async def create(
        self,
        db: AsyncSession,
        data: AdvancedPaymentCreate,
        proof: Optional[UploadFile] = None,
    ) -> tuple[AdvancedPayment, Optional[AllocationResult]]:
        """
        Record an advance and, when order_id is given, apply it to that
        order up to its outstanding amount.

        Raises:
            NotFoundError: unknown client or order
            BadRequestError: order of another client, or cancelled
        """
        try:
            client = await db.get(Client, data.client_id)
            if client is None or not client.is_active:
                raise NotFoundError(f"Client {data.client_id} not found")

            order = None
            if data.order_id:
                order = await get_order_for_update(db, data.order_id)
                if order.client_id != client.id:
                    raise BadRequestError(
                        f"Order #{order.order_no} does not belong to client #{client.client_no}"
                    )
                if order.status == OrderStatus.CANCELLED.value:
                    raise BadRequestError(f"Order #{order.order_no} is cancelled")

            media_key = None
            if proof is not None:
                media_key = await self.storage.save_upload(client.name, ADVANCED_PAYMENTS, proof)

            advance = AdvancedPayment(
                id=uuid.uuid4(),
                client=client,
                client_id=client.id,
                amount=data.amount,
                remaining_amount=data.amount,
                refunded_amount=Decimal("0.00"),
                payment_date=data.payment_date,
                payment_method=data.payment_method.value if data.payment_method else None,
                txn_number=data.txn_number,
                remarks=data.remarks,
                media_file_url=media_key,
                status=AdvancedPaymentStatus.ACTIVE.value,
                usage_history=[],
            )
            db.add(advance)
            await db.flush()

            allocation = None
            if order is not None and order.remaining_amount > ZERO:
                step = min(advance.remaining_amount, order.remaining_amount)
                allocation = AllocationResult(
                    total_allocated=step,
                    allocations=[
                        await self._allocate(
                            db, advance, order, step,
                            txn_suffix="DIRECT",
                            remarks=f"Allocated to order #{order.order_no} on receipt",
                        )
                    ],
                )

            await db.flush()
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Created advance %s of %s for client #%s (remaining %s)",
            advance.id, advance.amount, client.client_no, advance.remaining_amount,
        )
        return advance, allocation

    async def get_by_id(self, db: AsyncSession, advance_id: uuid.UUID) -> AdvancedPayment:
        advance = await db.get(AdvancedPayment, advance_id)
        if advance is None:
            raise NotFoundError(f"Advanced payment {advance_id} not found")
        return advance

    async def list_by_client(
        self,
        db: AsyncSession,
        client_id: uuid.UUID,
        status: Optional[AdvancedPaymentStatus] = None,
    ) -> list[AdvancedPayment]:
        query = select(AdvancedPayment).where(AdvancedPayment.client_id == client_id)
        if status is not None:
            query = query.where(AdvancedPayment.status == status.value)
        result = await db.execute(
            query.order_by(AdvancedPayment.payment_date.desc(), AdvancedPayment.created_at.desc())
        )
        return list(result.scalars().all())

    async def balance(self, db: AsyncSession, client_id: uuid.UUID) -> AdvanceBalance:
        """Credit the client can still use."""
        result = await db.execute(
            select(
                func.coalesce(func.sum(AdvancedPayment.remaining_amount), 0),
                func.count(AdvancedPayment.id),
            ).where(
                AdvancedPayment.client_id == client_id,
                AdvancedPayment.status == AdvancedPaymentStatus.ACTIVE.value,
                AdvancedPayment.remaining_amount > 0,
            )
        )
        available, count = result.one()
        return AdvanceBalance(
            client_id=client_id,
            available_balance=money(available or 0),
            active_payments=count or 0,
        )

    async def use(
        self,
        db: AsyncSession,
        advance_id: uuid.UUID,
        data: AdvancedPaymentUse,
    ) -> AllocationResult:
        """
        Manually apply an advance to one order.

        Without an amount, min(advance balance, order outstanding) is used.
        The order row is locked before the advance, as in auto_allocate.

        Raises:
            BadRequestError: advance not active, order of another client,
                amount above either balance
        """
        try:
            order = await get_order_for_update(db, data.order_id)
            advance = await self._get_for_update(db, advance_id)
            if advance.status != AdvancedPaymentStatus.ACTIVE.value:
                raise BadRequestError(f"Advanced payment is {advance.status}")

            if order.client_id != advance.client_id:
                raise BadRequestError("Order and advanced payment belong to different clients")
            if order.status == OrderStatus.CANCELLED.value:
                raise BadRequestError(f"Order #{order.order_no} is cancelled")

            amount = data.amount or min(advance.remaining_amount, order.remaining_amount)
            allocation = await self._allocate(
                db, advance, order, amount,
                txn_suffix="MANUAL",
                remarks=data.remarks or f"Manually applied to order #{order.order_no}",
            )
            await db.flush()
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        return AllocationResult(total_allocated=allocation.amount, allocations=[allocation])

    async def refund(
        self,
        db: AsyncSession,
        advance_id: uuid.UUID,
        remarks: Optional[str] = None,
    ) -> AdvancedPayment:
        """
        Refund the unused balance. Allocations already made stay in place.

        Raises:
            BadRequestError: advance not active or nothing left to refund
        """
        try:
            advance = await self._get_for_update(db, advance_id)
            if advance.status != AdvancedPaymentStatus.ACTIVE.value or advance.remaining_amount <= ZERO:
                raise BadRequestError("Only an active advance with a balance can be refunded")

            advance.refunded_amount = advance.remaining_amount
            advance.remaining_amount = Decimal("0.00")
            advance.status = AdvancedPaymentStatus.REFUNDED.value
            if remarks:
                advance.remarks = f"{advance.remarks}\n{remarks}" if advance.remarks else remarks

            await db.flush()
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("Refunded %s of advance %s", advance.refunded_amount, advance.id)
        return advance

    # ------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------

    async def client_analytics(self, db: AsyncSession, client_id: uuid.UUID) -> ClientAdvanceAnalytics:
        client = await db.get(Client, client_id)
        if client is None:
            raise NotFoundError(f"Client {client_id} not found")

        payments = await self.list_by_client(db, client_id)
        count_by_status = {s.value: 0 for s in AdvancedPaymentStatus}
        for p in payments:
            count_by_status[p.status] = count_by_status.get(p.status, 0) + 1

        return ClientAdvanceAnalytics(
            client_id=client.id,
            client_name=client.name,
            total_advanced=money(sum((p.amount for p in payments), ZERO)),
            total_used=money(sum((p.used_amount for p in payments), ZERO)),
            total_remaining=money(sum((p.remaining_amount for p in payments), ZERO)),
            total_refunded=money(sum((p.refunded_amount for p in payments), ZERO)),
            count_by_status=count_by_status,
            payments=[AdvancedPaymentRead.model_validate(p) for p in payments],
        )

    async def all_analytics(self, db: AsyncSession) -> AllClientsAdvanceAnalytics:
        result = await db.execute(
            select(
                Client.id,
                Client.name,
                func.sum(AdvancedPayment.amount),
                func.sum(AdvancedPayment.remaining_amount),
                func.sum(AdvancedPayment.refunded_amount),
                func.count(AdvancedPayment.id),
            )
            .join(Client, Client.id == AdvancedPayment.client_id)
            .group_by(Client.id, Client.name)
            .order_by(func.sum(AdvancedPayment.amount).desc())
        )

        rows = []
        for client_id, name, amount, remaining, refunded, count in result.all():
            amount, remaining, refunded = money(amount or 0), money(remaining or 0), money(refunded or 0)
            rows.append(ClientAdvanceRow(
                client_id=client_id,
                client_name=name,
                total_advanced=amount,
                total_used=amount - remaining - refunded,
                total_remaining=remaining,
                payment_count=count,
            ))

        return AllClientsAdvanceAnalytics(
            total_advanced=money(sum((r.total_advanced for r in rows), ZERO)),
            total_used=money(sum((r.total_used for r in rows), ZERO)),
            total_remaining=money(sum((r.total_remaining for r in rows), ZERO)),
            client_count=len(rows),
            clients=rows,
        )


advanced_payment_service = AdvancedPaymentService()
