"""
Shared row-locking queries
Project: Order Ledger

Orders are read with SELECT ... FOR UPDATE before any read-modify-write of
their quantities or balances, so concurrent dispatches and payments on the
same order serialize on the row lock.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.core.exceptions import NotFoundError
from orderledger.models import Order, SubOrder
from orderledger.models.order import SubOrderType


async def get_order_for_update(db: AsyncSession, order_id: uuid.UUID) -> Order:
    """
    Raises:
        NotFoundError: unknown order
    """
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    return order


async def dispatch_statuses(db: AsyncSession, order_id: uuid.UUID) -> list[str]:
    """Statuses of the order's DISPATCH sub-orders (dispatch invoices excluded)."""
    result = await db.execute(
        select(SubOrder.status).where(
            SubOrder.order_id == order_id,
            SubOrder.sub_order_type == SubOrderType.DISPATCH.value,
        )
    )
    return list(result.scalars().all())
