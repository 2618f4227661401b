"""
Service layer for dispatch invoices
Project: Order Ledger

Read side of DISPATCH_INVOICE sub-orders: listings and analytics.
Creation lives in SubOrderService.create_dispatch_invoice.
"""

import logging
import uuid
from collections import defaultdict
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.core.exceptions import NotFoundError
from orderledger.models import Client, SubOrder
from orderledger.models.order import SubOrderType
from orderledger.schemas.dashboard import DispatchInvoiceAnalytics, MonthlyDispatch, TopClient
from orderledger.services.ledger_rules import ZERO, money
from orderledger.services.sub_order_service import SubOrderService, sub_order_service

logger = logging.getLogger(__name__)

TOP_CLIENTS = 5


class DispatchInvoiceService:

    def __init__(self, sub_orders: SubOrderService = sub_order_service) -> None:
        self.sub_orders = sub_orders

    async def get_all(
        self,
        db: AsyncSession,
        page: int = 1,
        limit: int = 10,
        client_id: Optional[uuid.UUID] = None,
        order_no: Optional[int] = None,
    ) -> tuple[list[SubOrder], int]:
        return await self.sub_orders.get_all(
            db,
            page=page,
            limit=limit,
            client_id=client_id,
            order_no=order_no,
            sub_order_type=SubOrderType.DISPATCH_INVOICE,
        )

    async def get_by_id(self, db: AsyncSession, invoice_id: uuid.UUID) -> SubOrder:
        invoice = await db.get(SubOrder, invoice_id)
        if invoice is None or invoice.sub_order_type != SubOrderType.DISPATCH_INVOICE.value:
            raise NotFoundError(f"Dispatch invoice {invoice_id} not found")
        return invoice

    async def analytics(self, db: AsyncSession) -> DispatchInvoiceAnalytics:
        """Count, value, monthly breakdown (YYYY-MM) and top clients by value."""
        result = await db.execute(
            select(SubOrder.dispatch_date, SubOrder.dispatched_value, Client.id, Client.name)
            .join(Client, Client.id == SubOrder.client_id)
            .where(SubOrder.sub_order_type == SubOrderType.DISPATCH_INVOICE.value)
        )
        rows = result.all()

        monthly: dict[str, list] = defaultdict(lambda: [0, ZERO])
        clients: dict[uuid.UUID, list] = {}
        for dispatch_date, value, client_id, client_name in rows:
            value = Decimal(value or 0)
            bucket = monthly[dispatch_date.strftime("%Y-%m")]
            bucket[0] += 1
            bucket[1] += value
            entry = clients.setdefault(client_id, [client_name, 0, ZERO])
            entry[1] += 1
            entry[2] += value

        top = sorted(clients.items(), key=lambda kv: kv[1][2], reverse=True)[:TOP_CLIENTS]

        return DispatchInvoiceAnalytics(
            total_invoices=len(rows),
            total_value=money(sum((Decimal(r[1] or 0) for r in rows), ZERO)),
            monthly=[
                MonthlyDispatch(month=month, count=count, value=money(value))
                for month, (count, value) in sorted(monthly.items())
            ],
            top_clients=[
                TopClient(client_id=client_id, client_name=name, count=count, value=money(value))
                for client_id, (name, count, value) in top
            ],
        )


dispatch_invoice_service = DispatchInvoiceService()
