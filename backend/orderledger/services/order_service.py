"""
Service layer for Order
Project: Order Ledger

Business logic for orders:
- Line pricing, GST and totals at creation
- Sequential order numbers
- Best-effort advance allocation after the order is committed
- Manual status changes (CLOSED / CANCELLED)
- Dashboards
"""

import datetime
import logging
import uuid
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import delete as sa_delete
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.core.config import settings
from orderledger.core.exceptions import ConflictError, NotFoundError
from orderledger.models import Client, Order, OrderLine, Product, SubOrder, Transaction
from orderledger.models.order import OrderStatus, SubOrderStatus, SubOrderType, TxnStatus
from orderledger.schemas.client import ClientSummary
from orderledger.schemas.dashboard import AdminDashboard, RevenueSummary, SubAdminDashboard
from orderledger.schemas.order import (
    OrderCreate,
    OrderProductRead,
    OrderProductsResponse,
    OrderRead,
)
from orderledger.services import ledger_rules
from orderledger.services.advanced_payment_service import (
    AdvancedPaymentService,
    advanced_payment_service,
)
from orderledger.services.ledger_rules import ZERO, money
from orderledger.services.post_commit import HookReport, PostCommitHooks
from orderledger.services.sequence_service import ORDER_NO, SequenceService, sequence_service

logger = logging.getLogger(__name__)

RECENT_ORDERS = 5


class OrderService:
    """
    Orders and their lifecycle.

    `create` owns its transaction and commits; the other writes flush and
    leave the commit to the router.
    """

    def __init__(
        self,
        sequences: SequenceService = sequence_service,
        advances: AdvancedPaymentService = advanced_payment_service,
    ) -> None:
        self.sequences = sequences
        self.advances = advances

    # ------------------------------------------------------------
    # Create
    # ------------------------------------------------------------

    async def create(self, db: AsyncSession, data: OrderCreate) -> tuple[Order, HookReport]:
        """
        Create an order, then try to settle it from the client's advances.

        Steps:
        1. Check the client and every product
        2. Price each line (rate defaults to the product's rate_per_unit)
        3. Compute subtotal, GST and total
        4. Assign the next order number and commit
        5. Run the auto-allocation hook in its own transaction

        Returns:
            The order (reloaded after allocation) and the hook report;
            allocation failures show up in report.warnings

        Raises:
            NotFoundError: unknown client or product
            BadRequestError: invalid quantity, rate or discount
        """
        try:
            client = await db.get(Client, data.client_id)
            if client is None or not client.is_active:
                raise NotFoundError(f"Client {data.client_id} not found")

            lines: list[OrderLine] = []
            for line_no, item in enumerate(data.products, start=1):
                product = await db.get(Product, item.product_id)
                if product is None or not product.is_active:
                    raise NotFoundError(f"Product {item.product_id} not found")

                rate = item.rate_price if item.rate_price is not None else product.rate_per_unit
                amount = ledger_rules.line_amount(rate, item.quantity, item.discount)

                line = OrderLine(
                    line_no=line_no,
                    product_id=product.id,
                    quantity=item.quantity,
                    remaining_quantity=item.quantity,
                    unit_type=item.unit_type.value if item.unit_type else product.unit_type,
                    rate_price=money(rate),
                    discount=item.discount,
                    amount=amount,
                )
                line.product = product
                lines.append(line)

            gst_rate = data.gst_rate if data.gst_rate is not None else settings.default_gst_rate
            totals = ledger_rules.order_totals(
                (l.amount for l in lines), data.gst_enabled, gst_rate
            )
            quantity = sum((l.quantity for l in lines), ZERO)

            order = Order(
                id=uuid.uuid4(),
                order_no=await self.sequences.next_value(db, ORDER_NO),
                client_id=client.id,
                order_date=data.order_date,
                due_date=data.due_date,
                status=OrderStatus.PENDING.value,
                txn_status=TxnStatus.PENDING.value,
                quantity=quantity,
                remaining_quantity=quantity,
                subtotal=totals.subtotal,
                gst_enabled=data.gst_enabled,
                gst_rate=totals.gst_rate,
                gst_amount=totals.gst_amount,
                total_amount=totals.total_amount,
                remaining_amount=totals.total_amount,
                dispatched_value=Decimal("0.00"),
                remarks=data.remarks,
                lines=lines,
            )
            order.client = client
            db.add(order)

            await db.flush()
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Created order #%s for client #%s: %s lines, total %s",
            order.order_no, client.client_no, len(lines), order.total_amount,
        )

        order_id = order.id
        hooks = PostCommitHooks()
        hooks.add("auto_allocate", lambda: self.advances.auto_allocate_committed(db, order_id))
        report = await hooks.run()

        return await self._reload(db, order_id), report

    async def _reload(self, db: AsyncSession, order_id: uuid.UUID) -> Order:
        """Fresh copy of the order, lines included."""
        result = await db.execute(
            select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    # ------------------------------------------------------------
    # Read
    # ------------------------------------------------------------

    async def get_all(
        self,
        db: AsyncSession,
        page: int = 1,
        limit: int = 10,
        status: Optional[OrderStatus] = None,
        txn_status: Optional[TxnStatus] = None,
        client_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
        date_from: Optional[datetime.date] = None,
        date_to: Optional[datetime.date] = None,
    ) -> tuple[list[Order], int]:
        """
        Paginated order list, newest order number first.

        Args:
            search: order number when numeric, otherwise client name or alias
        """
        conditions = []
        if status:
            conditions.append(Order.status == status.value)
        if txn_status:
            conditions.append(Order.txn_status == txn_status.value)
        if client_id:
            conditions.append(Order.client_id == client_id)
        if date_from:
            conditions.append(Order.order_date >= date_from)
        if date_to:
            conditions.append(Order.order_date <= date_to)
        if search:
            term = search.strip()
            if term.isdigit():
                conditions.append(Order.order_no == int(term))
            else:
                like = f"%{term}%"
                conditions.append(
                    Order.client_id.in_(
                        select(Client.id).where(or_(Client.name.ilike(like), Client.alias.ilike(like)))
                    )
                )

        query = select(Order).where(*conditions).order_by(Order.order_no.desc())
        result = await db.execute(query.offset((page - 1) * limit).limit(limit))
        orders = list(result.scalars().all())

        total = (
            await db.execute(select(func.count()).select_from(Order).where(*conditions))
        ).scalar() or 0

        logger.info("Fetched %s of %s orders (page %s)", len(orders), total, page)
        return orders, total

    async def get_by_id(self, db: AsyncSession, order_id: uuid.UUID) -> Order:
        """
        Raises:
            NotFoundError: unknown order
        """
        order = await db.get(Order, order_id)
        if order is None:
            logger.warning("Order not found: %s", order_id)
            raise NotFoundError(f"Order {order_id} not found")
        return order

    async def get_by_order_no(self, db: AsyncSession, order_no: int) -> Order:
        result = await db.execute(select(Order).where(Order.order_no == order_no))
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError(f"Order #{order_no} not found")
        return order

    async def products_by_order_no(self, db: AsyncSession, order_no: int) -> OrderProductsResponse:
        """Lines of an order with what is left to dispatch."""
        order = await self.get_by_order_no(db, order_no)
        return OrderProductsResponse(
            order_id=order.id,
            order_no=order.order_no,
            client=ClientSummary.model_validate(order.client, from_attributes=True),
            status=OrderStatus(order.status),
            products=[
                OrderProductRead(
                    product_id=line.product_id,
                    product_name=line.product_name or "",
                    unit_type=line.unit_type,
                    quantity=line.quantity,
                    remaining_quantity=line.remaining_quantity,
                    dispatched_quantity=line.quantity - line.remaining_quantity,
                    rate_price=line.rate_price,
                    amount=line.amount,
                )
                for line in order.lines
            ],
        )

    async def list_by_client(
        self,
        db: AsyncSession,
        client_id: uuid.UUID,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Order], int]:
        client = await db.get(Client, client_id)
        if client is None:
            raise NotFoundError(f"Client {client_id} not found")
        return await self.get_all(db, page=page, limit=limit, client_id=client_id)

    # ------------------------------------------------------------
    # Update / delete
    # ------------------------------------------------------------

    async def update_status(self, db: AsyncSession, order_id: uuid.UUID, new_status: OrderStatus) -> Order:
        """
        Manual status change.

        Raises:
            BadRequestError: transition not allowed
        """
        order = await self.get_by_id(db, order_id)
        old_status = order.status
        ledger_rules.check_transition(old_status, new_status)

        order.status = new_status.value
        await db.flush()

        logger.info("Order #%s status %s -> %s", order.order_no, old_status, new_status.value)
        return order

    async def delete(self, db: AsyncSession, order_id: uuid.UUID) -> None:
        """
        Delete an order with its lines and dispatches.

        Raises:
            ConflictError: payments or advance allocations recorded against it
        """
        order = await self.get_by_id(db, order_id)

        payments = (
            await db.execute(
                select(func.count()).select_from(Transaction).where(Transaction.order_id == order.id)
            )
        ).scalar() or 0
        if payments:
            raise ConflictError(
                f"Order #{order.order_no} has {payments} payments and cannot be deleted",
                extra={"transactions": payments},
            )

        await db.execute(sa_delete(SubOrder).where(SubOrder.order_id == order.id))
        await db.delete(order)
        await db.flush()
        logger.info("Deleted order #%s", order.order_no)

    # ------------------------------------------------------------
    # Ledger and dashboards
    # ------------------------------------------------------------

    async def ledger(self, db: AsyncSession, order_id: uuid.UUID) -> dict[str, Any]:
        """Everything the order ledger PDF shows."""
        order = await self.get_by_id(db, order_id)

        dispatches = (
            await db.execute(
                select(SubOrder)
                .where(
                    SubOrder.order_id == order.id,
                    SubOrder.sub_order_type == SubOrderType.DISPATCH.value,
                )
                .order_by(SubOrder.dispatch_date.asc(), SubOrder.created_at.asc())
            )
        ).scalars().all()

        transactions = (
            await db.execute(
                select(Transaction)
                .where(Transaction.order_id == order.id)
                .order_by(Transaction.transaction_date.asc(), Transaction.created_at.asc())
            )
        ).scalars().all()

        return {
            "order": order,
            "client": order.client,
            "lines": order.lines,
            "dispatches": list(dispatches),
            "transactions": list(transactions),
            "paid_amount": order.paid_amount,
            "settlement_status": ledger_rules.settlement_status(order.status, order.txn_status).value,
        }

    async def _count_by(self, db: AsyncSession, column, enum_cls) -> dict[str, int]:
        counts = {s.value: 0 for s in enum_cls}
        result = await db.execute(select(column, func.count()).group_by(column))
        for value, count in result.all():
            counts[value] = count
        return counts

    async def dashboard_stats(self, db: AsyncSession) -> AdminDashboard:
        by_status = await self._count_by(db, Order.status, OrderStatus)
        by_txn_status = await self._count_by(db, Order.txn_status, TxnStatus)

        live = Order.status != OrderStatus.CANCELLED.value
        total, outstanding = (
            await db.execute(
                select(
                    func.coalesce(func.sum(Order.total_amount), 0),
                    func.coalesce(func.sum(Order.remaining_amount), 0),
                ).where(live)
            )
        ).one()
        total, outstanding = money(total), money(outstanding)

        total_clients = (
            await db.execute(select(func.count()).select_from(Client).where(Client.is_active.is_(True)))
        ).scalar() or 0
        total_products = (
            await db.execute(select(func.count()).select_from(Product).where(Product.is_active.is_(True)))
        ).scalar() or 0

        recent = (
            await db.execute(select(Order).order_by(Order.order_no.desc()).limit(RECENT_ORDERS))
        ).scalars().all()

        return AdminDashboard(
            total_orders=sum(by_status.values()),
            orders_by_status=by_status,
            orders_by_txn_status=by_txn_status,
            revenue=RevenueSummary(total=total, paid=total - outstanding, outstanding=outstanding),
            total_clients=total_clients,
            total_products=total_products,
            recent_orders=[OrderRead.model_validate(o) for o in recent],
        )

    async def sub_admin_stats(self, db: AsyncSession) -> SubAdminDashboard:
        sub_orders_by_status = {s.value: 0 for s in SubOrderStatus}
        result = await db.execute(
            select(SubOrder.status, func.count())
            .where(SubOrder.sub_order_type == SubOrderType.DISPATCH.value)
            .group_by(SubOrder.status)
        )
        for value, count in result.all():
            sub_orders_by_status[value] = count

        return SubAdminDashboard(
            total_sub_orders=sum(sub_orders_by_status.values()),
            sub_orders_by_status=sub_orders_by_status,
            orders_by_status=await self._count_by(db, Order.status, OrderStatus),
        )


order_service = OrderService()
