"""
FastAPI router for Order
Project: Order Ledger

Endpoints for orders: creation, listing, manual status changes, deletion,
ledger PDF and dashboard.
"""

import datetime
import logging
import uuid
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.api.v1.responses import pdf_response
from orderledger.core.database import get_db
from orderledger.core.deps import Capability, require_capability
from orderledger.models.order import OrderStatus, TxnStatus
from orderledger.schemas.dashboard import AdminDashboard
from orderledger.schemas.order import (
    OrderCreate,
    OrderCreationResponse,
    OrderList,
    OrderProductsResponse,
    OrderRead,
    OrderStatusUpdate,
)
from orderledger.services.order_service import OrderService, order_service
from orderledger.services.pdf_service import PdfService, pdf_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/order",
    tags=["Orders"],
)


def get_order_service() -> OrderService:
    return order_service


def get_pdf_service() -> PdfService:
    return pdf_service


def _order_list(orders, total: int, page: int, limit: int) -> OrderList:
    return OrderList(
        items=[OrderRead.model_validate(o) for o in orders],
        total=total,
        page=page,
        limit=limit,
    )


@router.post(
    "/",
    name="order_create",
    summary="Create order",
    description="Prices the lines, applies GST and settles what it can from the client's advances.",
    response_model=OrderCreationResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_capability(Capability.ORDER_CREATE))],
)
async def create_order(
    data: OrderCreate,
    db: AsyncSession = Depends(get_db),
    service: OrderService = Depends(get_order_service),
) -> OrderCreationResponse:
    """
    A failed advance allocation does not fail the request; it is reported
    in `warnings` and the order stays unpaid.
    """
    order, report = await service.create(db, data)
    allocation = report.result("auto_allocate")
    return OrderCreationResponse(
        order=OrderRead.model_validate(order),
        allocated_amount=allocation.total_allocated if allocation else Decimal("0.00"),
        warnings=report.warnings,
    )


@router.get(
    "/",
    name="order_list",
    summary="List orders",
    response_model=OrderList,
    dependencies=[Depends(require_capability(Capability.ORDER_LIST))],
)
async def get_orders(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(10, ge=1, le=100, description="Rows per page"),
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    txn_status: Optional[TxnStatus] = Query(None),
    client_id: Optional[uuid.UUID] = Query(None),
    search: Optional[str] = Query(None, description="Order number or client name"),
    date_from: Optional[datetime.date] = Query(None),
    date_to: Optional[datetime.date] = Query(None),
    db: AsyncSession = Depends(get_db),
    service: OrderService = Depends(get_order_service),
) -> OrderList:
    orders, total = await service.get_all(
        db,
        page=page,
        limit=limit,
        status=status_filter,
        txn_status=txn_status,
        client_id=client_id,
        search=search,
        date_from=date_from,
        date_to=date_to,
    )
    return _order_list(orders, total, page, limit)


@router.get(
    "/dashboard",
    name="order_dashboard",
    summary="Order dashboard",
    response_model=AdminDashboard,
    dependencies=[Depends(require_capability(Capability.DASHBOARD_ADMIN))],
)
async def get_dashboard(
    db: AsyncSession = Depends(get_db),
    service: OrderService = Depends(get_order_service),
) -> AdminDashboard:
    return await service.dashboard_stats(db)


@router.get(
    "/number/{order_no}",
    name="order_by_number",
    response_model=OrderRead,
    dependencies=[Depends(require_capability(Capability.ORDER_READ))],
)
async def get_order_by_number(
    order_no: int,
    db: AsyncSession = Depends(get_db),
    service: OrderService = Depends(get_order_service),
) -> OrderRead:
    return OrderRead.model_validate(await service.get_by_order_no(db, order_no))


@router.get(
    "/number/{order_no}/products",
    name="order_products",
    summary="Order lines with quantities left to dispatch",
    response_model=OrderProductsResponse,
    dependencies=[Depends(require_capability(Capability.ORDER_LIST))],
)
async def get_order_products(
    order_no: int,
    db: AsyncSession = Depends(get_db),
    service: OrderService = Depends(get_order_service),
) -> OrderProductsResponse:
    return await service.products_by_order_no(db, order_no)


@router.get(
    "/client/{client_id}",
    name="order_by_client",
    response_model=OrderList,
    dependencies=[Depends(require_capability(Capability.ORDER_LIST))],
)
async def get_orders_by_client(
    client_id: uuid.UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    service: OrderService = Depends(get_order_service),
) -> OrderList:
    orders, total = await service.list_by_client(db, client_id, page=page, limit=limit)
    return _order_list(orders, total, page, limit)


@router.get(
    "/{order_id}",
    name="order_detail",
    response_model=OrderRead,
    dependencies=[Depends(require_capability(Capability.ORDER_READ))],
)
async def get_order(
    order_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: OrderService = Depends(get_order_service),
) -> OrderRead:
    return OrderRead.model_validate(await service.get_by_id(db, order_id))


@router.get(
    "/{order_id}/ledger",
    name="order_ledger_pdf",
    summary="Order ledger PDF",
    response_class=Response,
    dependencies=[Depends(require_capability(Capability.ORDER_READ))],
)
async def get_order_ledger(
    order_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: OrderService = Depends(get_order_service),
    pdf: PdfService = Depends(get_pdf_service),
) -> Response:
    ledger = await service.ledger(db, order_id)
    content = await run_in_threadpool(pdf.order_ledger, ledger)
    return pdf_response(content, f"order-{ledger['order'].order_no}.pdf")


@router.patch(
    "/{order_id}/status",
    name="order_status",
    summary="Close or cancel an order",
    response_model=OrderRead,
    dependencies=[Depends(require_capability(Capability.ORDER_STATUS))],
)
async def update_order_status(
    order_id: uuid.UUID,
    data: OrderStatusUpdate,
    db: AsyncSession = Depends(get_db),
    service: OrderService = Depends(get_order_service),
) -> OrderRead:
    """
    Raises:
        BadRequestError: transition not allowed from the current status
    """
    order = await service.update_status(db, order_id, data.status)
    await db.commit()
    return OrderRead.model_validate(order)


@router.delete(
    "/{order_id}",
    name="order_delete",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_capability(Capability.ORDER_DELETE))],
)
async def delete_order(
    order_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: OrderService = Depends(get_order_service),
) -> None:
    """Refused while payments are recorded against the order."""
    await service.delete(db, order_id)
    await db.commit()
