"""
Service layer for SubOrder
Project: Order Ledger

Dispatches against an order:
- Single and atomic multi-line dispatch
- Sub-order status changes, single and bulk, with order completion
  re-derived afterwards
- Dispatch invoices (shipment snapshot, numbered DISP-<order_no>-<n>)

Every write locks the order row and commits in one transaction.
"""

import datetime
import logging
import uuid
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.core.exceptions import BadRequestError, NotFoundError
from orderledger.models import Order, SubOrder
from orderledger.models.order import OrderStatus, SubOrderStatus, SubOrderType
from orderledger.schemas.sub_order import (
    BulkStatusError,
    BulkStatusResult,
    BulkStatusUpdate,
    DispatchInvoiceCreate,
    DispatchLine,
    SubOrderBatchCreate,
    SubOrderCreate,
    SubOrderRead,
)
from orderledger.services import ledger_rules
from orderledger.services.ledger_rules import ZERO, DispatchRequest, money
from orderledger.services.queries import dispatch_statuses, get_order_for_update

logger = logging.getLogger(__name__)


class SubOrderService:

    # ------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------

    async def _dispatch_lines(
        self,
        db: AsyncSession,
        order: Order,
        lines: Sequence[DispatchLine],
        dispatch_date: datetime.date,
        remarks: Optional[str],
    ) -> list[SubOrder]:
        """
        Validate the whole batch, then apply it. Runs in the caller's
        transaction; the order must already be locked.
        """
        requests = [
            DispatchRequest(
                product_id=line.product_id,
                quantity=line.quantity,
                unit_type=line.unit_type.value if line.unit_type else None,
            )
            for line in lines
        ]
        ledger_rules.validate_dispatch_batch(order, requests)

        sub_orders = []
        for req in requests:
            order_line = order.get_line(req.product_id)
            value = ledger_rules.apply_dispatch(order, req)

            sub = SubOrder(
                id=uuid.uuid4(),
                order_id=order.id,
                order_no=order.order_no,
                client_id=order.client_id,
                product_id=req.product_id,
                quantity=req.quantity,
                unit_type=order_line.unit_type,
                status=SubOrderStatus.PENDING.value,
                sub_order_type=SubOrderType.DISPATCH.value,
                dispatch_date=dispatch_date,
                dispatched_value=value,
                remarks=remarks,
            )
            sub.product = order_line.product
            db.add(sub)
            sub_orders.append(sub)

        await db.flush()
        await self._rederive(db, order)
        return sub_orders

    async def _rederive(self, db: AsyncSession, order: Order) -> OrderStatus:
        old_status = order.status
        new_status = ledger_rules.derive_order_status(order, await dispatch_statuses(db, order.id))
        order.status = new_status.value
        if old_status != order.status:
            logger.info("Order #%s status %s -> %s", order.order_no, old_status, order.status)
        return new_status

    async def create(self, db: AsyncSession, data: SubOrderCreate) -> SubOrder:
        """
        Dispatch one product line.

        Raises:
            NotFoundError: unknown order, or product not on the order
            BadRequestError: quantity above the remaining one, unit
                mismatch, closed or cancelled order
        """
        batch = SubOrderBatchCreate(
            order_id=data.order_id,
            lines=[DispatchLine(product_id=data.product_id, quantity=data.quantity, unit_type=data.unit_type)],
            dispatch_date=data.dispatch_date,
            remarks=data.remarks,
        )
        _, sub_orders = await self.create_batch(db, batch)
        return sub_orders[0]

    async def create_batch(self, db: AsyncSession, data: SubOrderBatchCreate) -> tuple[Order, list[SubOrder]]:
        """
        Dispatch several lines all-or-nothing.

        Quantities for the same product are summed before checking the
        remaining quantity; any violation rejects the whole batch.
        """
        try:
            order = await get_order_for_update(db, data.order_id)
            sub_orders = await self._dispatch_lines(
                db, order, data.lines, data.dispatch_date, data.remarks
            )
            await db.flush()
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Dispatched %s line(s) on order #%s (remaining qty %s, dispatched value %s)",
            len(sub_orders), order.order_no, order.remaining_quantity, order.dispatched_value,
        )
        return order, sub_orders

    # ------------------------------------------------------------
    # Status
    # ------------------------------------------------------------

    async def update_status(self, db: AsyncSession, sub_order_id: uuid.UUID, status: SubOrderStatus) -> tuple[SubOrder, Order]:
        """Change one sub-order status and re-derive its order."""
        try:
            sub = await self.get_by_id(db, sub_order_id)
            order = await get_order_for_update(db, sub.order_id)
            sub.status = status.value
            await db.flush()
            await self._rederive(db, order)
            await db.flush()
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("Sub-order %s of order #%s -> %s", sub.id, sub.order_no, sub.status)
        return sub, order

    async def bulk_update_status(self, db: AsyncSession, data: BulkStatusUpdate) -> BulkStatusResult:
        """
        Update many sub-orders in one transaction.

        Unknown ids and invalid statuses are reported per item and do not
        stop the others. Each affected order is re-derived once.
        """
        errors: list[BulkStatusError] = []
        updated: list[SubOrder] = []
        completed_orders: list[int] = []

        try:
            for item in data.updates:
                try:
                    status = SubOrderStatus(item.status)
                except ValueError:
                    errors.append(BulkStatusError(
                        sub_order_id=item.sub_order_id,
                        error=f"Invalid status '{item.status}'",
                    ))
                    continue

                sub = await db.get(SubOrder, item.sub_order_id)
                if sub is None:
                    errors.append(BulkStatusError(
                        sub_order_id=item.sub_order_id,
                        error="Sub-order not found",
                    ))
                    continue

                sub.status = status.value
                updated.append(sub)

            await db.flush()

            order_ids = list(dict.fromkeys(sub.order_id for sub in updated))
            for order_id in order_ids:
                order = await get_order_for_update(db, order_id)
                if await self._rederive(db, order) == OrderStatus.COMPLETED:
                    completed_orders.append(order.order_no)

            await db.flush()
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if errors:
            logger.warning("Bulk status update: %s failed of %s", len(errors), len(data.updates))
        logger.info(
            "Bulk status update: %s sub-orders, %s orders re-derived, completed %s",
            len(updated), len(order_ids), completed_orders,
        )
        return BulkStatusResult(
            success_count=len(updated),
            failed_count=len(errors),
            errors=errors,
            updated_sub_orders=[SubOrderRead.model_validate(s) for s in updated],
            completed_orders=completed_orders,
        )

    # ------------------------------------------------------------
    # Read
    # ------------------------------------------------------------

    async def get_by_id(self, db: AsyncSession, sub_order_id: uuid.UUID) -> SubOrder:
        sub = await db.get(SubOrder, sub_order_id)
        if sub is None:
            logger.warning("Sub-order not found: %s", sub_order_id)
            raise NotFoundError(f"Sub-order {sub_order_id} not found")
        return sub

    async def get_all(
        self,
        db: AsyncSession,
        page: int = 1,
        limit: int = 10,
        order_no: Optional[int] = None,
        client_id: Optional[uuid.UUID] = None,
        product_id: Optional[uuid.UUID] = None,
        status: Optional[SubOrderStatus] = None,
        sub_order_type: Optional[SubOrderType] = SubOrderType.DISPATCH,
    ) -> tuple[list[SubOrder], int]:
        """Paginated sub-orders, newest first. Dispatch invoices are excluded by default."""
        conditions = []
        if sub_order_type:
            conditions.append(SubOrder.sub_order_type == sub_order_type.value)
        if order_no is not None:
            conditions.append(SubOrder.order_no == order_no)
        if client_id:
            conditions.append(SubOrder.client_id == client_id)
        if product_id:
            conditions.append(SubOrder.product_id == product_id)
        if status:
            conditions.append(SubOrder.status == status.value)

        query = (
            select(SubOrder)
            .where(*conditions)
            .order_by(SubOrder.dispatch_date.desc(), SubOrder.created_at.desc())
        )
        result = await db.execute(query.offset((page - 1) * limit).limit(limit))
        sub_orders = list(result.scalars().all())

        total = (
            await db.execute(select(func.count()).select_from(SubOrder).where(*conditions))
        ).scalar() or 0
        return sub_orders, total

    async def get_by_order_no(self, db: AsyncSession, order_no: int) -> list[SubOrder]:
        exists = (await db.execute(select(Order.id).where(Order.order_no == order_no))).scalar_one_or_none()
        if exists is None:
            raise NotFoundError(f"Order #{order_no} not found")
        result = await db.execute(
            select(SubOrder)
            .where(
                SubOrder.order_no == order_no,
                SubOrder.sub_order_type == SubOrderType.DISPATCH.value,
            )
            .order_by(SubOrder.dispatch_date.asc(), SubOrder.created_at.asc())
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------
    # Dispatch invoice
    # ------------------------------------------------------------

    async def create_dispatch_invoice(self, db: AsyncSession, data: DispatchInvoiceCreate) -> SubOrder:
        """
        Apply the optional dispatch lines, then store the invoice snapshot.

        The invoice row itself moves no quantity. Without lines the
        snapshot lists the order's lines in full.

        Raises:
            BadRequestError: cancelled order, or any dispatch violation
        """
        try:
            order = await get_order_for_update(db, data.order_id)
            if order.status == OrderStatus.CANCELLED.value:
                raise BadRequestError(f"Order #{order.order_no} is cancelled")

            if data.lines:
                dispatched = await self._dispatch_lines(
                    db, order, data.lines, data.dispatch_date, data.remarks
                )
                items = [
                    self._snapshot_item(order, sub.product_id, sub.quantity, sub.dispatched_value)
                    for sub in dispatched
                ]
            else:
                items = [
                    self._snapshot_item(order, line.product_id, line.quantity, line.amount)
                    for line in order.lines
                ]

            subtotal = money(sum((Decimal(i["amount"]) for i in items), ZERO))
            gst_rate = order.gst_rate if data.gst_enabled else ZERO
            gst_amount = money(subtotal * gst_rate / ledger_rules.HUNDRED)

            sequence = (
                await db.execute(
                    select(func.count()).select_from(SubOrder).where(
                        SubOrder.order_id == order.id,
                        SubOrder.sub_order_type == SubOrderType.DISPATCH_INVOICE.value,
                    )
                )
            ).scalar() or 0

            invoice = SubOrder(
                id=uuid.uuid4(),
                order_id=order.id,
                order_no=order.order_no,
                client_id=order.client_id,
                product_id=None,
                quantity=sum((Decimal(i["quantity"]) for i in items), ZERO),
                status=SubOrderStatus.DISPATCHED.value,
                sub_order_type=SubOrderType.DISPATCH_INVOICE.value,
                dispatch_date=data.dispatch_date,
                dispatched_value=subtotal,
                invoice_no=f"DISP-{order.order_no}-{sequence + 1}",
                dispatch_info={
                    "vehicle_no": data.vehicle_no,
                    "transporter": data.transporter,
                    "driver_name": data.driver_name,
                    "consignee": data.consignee.model_dump() if data.consignee else None,
                    "buyer": data.buyer.model_dump() if data.buyer else None,
                    "gst_enabled": data.gst_enabled,
                    "gst_rate": str(gst_rate),
                    "subtotal": str(subtotal),
                    "gst_amount": str(gst_amount),
                    "total": str(subtotal + gst_amount),
                    "products": items,
                },
                remarks=data.remarks,
            )
            invoice.product = None
            db.add(invoice)

            await db.flush()
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Created dispatch invoice %s for order #%s (%s items, value %s)",
            invoice.invoice_no, order.order_no, len(items), subtotal,
        )
        return invoice

    @staticmethod
    def _snapshot_item(order: Order, product_id: uuid.UUID, quantity: Decimal, amount: Decimal) -> dict[str, Any]:
        line = order.get_line(product_id)
        return {
            "product_id": str(product_id),
            "product_name": line.product_name,
            "unit_type": line.unit_type,
            "quantity": str(quantity),
            "rate": str(money(line.unit_price)),
            "amount": str(money(amount)),
        }


sub_order_service = SubOrderService()
