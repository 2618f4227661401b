"""
FastAPI router for SubOrder
Project: Order Ledger

Dispatch endpoints: single and batch dispatch, status updates and
dispatch invoice creation.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.api.v1.responses import pdf_response
from orderledger.core.database import get_db
from orderledger.core.deps import Capability, require_capability
from orderledger.models.order import SubOrderStatus
from orderledger.schemas.sub_order import (
    BulkStatusResult,
    BulkStatusUpdate,
    DispatchInvoiceCreate,
    DispatchInvoiceCreationResponse,
    SubOrderBatchCreate,
    SubOrderBatchResponse,
    SubOrderCreate,
    SubOrderList,
    SubOrderRead,
    SubOrderStatusUpdate,
)
from orderledger.services.order_service import OrderService, order_service
from orderledger.services.pdf_service import PdfService, pdf_service
from orderledger.services.post_commit import PostCommitHooks
from orderledger.services.sub_order_service import SubOrderService, sub_order_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/sub-order",
    tags=["Sub-orders"],
)

can_manage = [Depends(require_capability(Capability.SUB_ORDER_MANAGE))]


def get_sub_order_service() -> SubOrderService:
    return sub_order_service


def get_order_service() -> OrderService:
    return order_service


def get_pdf_service() -> PdfService:
    return pdf_service


def _sub_order_list(sub_orders, total: int, page: int, limit: int) -> SubOrderList:
    return SubOrderList(
        items=[SubOrderRead.model_validate(s) for s in sub_orders],
        total=total,
        page=page,
        limit=limit,
    )


# -------------------------------------------------------------------
# Dispatch
# -------------------------------------------------------------------

@router.post(
    "/",
    name="sub_order_create",
    summary="Dispatch one product line",
    response_model=SubOrderRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=can_manage,
)
async def create_sub_order(
    data: SubOrderCreate,
    db: AsyncSession = Depends(get_db),
    service: SubOrderService = Depends(get_sub_order_service),
) -> SubOrderRead:
    """
    Raises:
        BadRequestError: quantity above the remaining one, unit mismatch,
            closed or cancelled order
        NotFoundError: product not on the order
    """
    return SubOrderRead.model_validate(await service.create(db, data))


@router.post(
    "/batch",
    name="sub_order_batch",
    summary="Dispatch several lines at once",
    description="All lines are validated before any is applied; one violation rejects the batch.",
    response_model=SubOrderBatchResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=can_manage,
)
async def create_sub_order_batch(
    data: SubOrderBatchCreate,
    db: AsyncSession = Depends(get_db),
    service: SubOrderService = Depends(get_sub_order_service),
) -> SubOrderBatchResponse:
    order, sub_orders = await service.create_batch(db, data)
    return SubOrderBatchResponse(
        order_id=order.id,
        order_status=order.status,
        remaining_quantity=order.remaining_quantity,
        dispatched_value=order.dispatched_value,
        sub_orders=[SubOrderRead.model_validate(s) for s in sub_orders],
    )


@router.post(
    "/dispatch-invoice",
    name="dispatch_invoice_create",
    summary="Create a dispatch invoice",
    description=(
        "Applies the optional dispatch lines, stores the shipment snapshot and "
        "returns its PDF, or JSON with pdf_error when rendering fails."
    ),
    status_code=status.HTTP_201_CREATED,
    responses={
        201: {
            "content": {"application/pdf": {}},
            "model": DispatchInvoiceCreationResponse,
        }
    },
    dependencies=[Depends(require_capability(Capability.DISPATCH_INVOICE_MANAGE))],
)
async def create_dispatch_invoice(
    data: DispatchInvoiceCreate,
    as_json: bool = Query(False, description="Skip the PDF and answer with JSON"),
    db: AsyncSession = Depends(get_db),
    service: SubOrderService = Depends(get_sub_order_service),
    orders: OrderService = Depends(get_order_service),
    pdf: PdfService = Depends(get_pdf_service),
) -> Response:
    invoice = await service.create_dispatch_invoice(db, data)
    body = DispatchInvoiceCreationResponse(dispatch_invoice=SubOrderRead.model_validate(invoice))
    if as_json:
        return JSONResponse(status_code=status.HTTP_201_CREATED, content=body.model_dump(mode="json"))

    order = await orders.get_by_id(db, invoice.order_id)
    hooks = PostCommitHooks()
    hooks.add("pdf", lambda: run_in_threadpool(pdf.dispatch_invoice, invoice, order))
    report = await hooks.run()

    if not report.ok:
        body.pdf_error = report.error_for("pdf")
        return JSONResponse(status_code=status.HTTP_201_CREATED, content=body.model_dump(mode="json"))

    response = pdf_response(
        report.result("pdf"),
        f"{invoice.invoice_no}.pdf",
        headers={"X-Dispatch-Invoice-Id": str(invoice.id)},
    )
    response.status_code = status.HTTP_201_CREATED
    return response


# -------------------------------------------------------------------
# Status
# -------------------------------------------------------------------

@router.patch(
    "/bulk-status",
    name="sub_order_bulk_status",
    summary="Update many sub-order statuses",
    description="Failures are reported per item; the rest are applied.",
    response_model=BulkStatusResult,
    dependencies=can_manage,
)
async def bulk_update_status(
    data: BulkStatusUpdate,
    db: AsyncSession = Depends(get_db),
    service: SubOrderService = Depends(get_sub_order_service),
) -> BulkStatusResult:
    return await service.bulk_update_status(db, data)


@router.patch(
    "/{sub_order_id}/status",
    name="sub_order_status",
    response_model=SubOrderRead,
    dependencies=can_manage,
)
async def update_status(
    sub_order_id: uuid.UUID,
    data: SubOrderStatusUpdate,
    db: AsyncSession = Depends(get_db),
    service: SubOrderService = Depends(get_sub_order_service),
) -> SubOrderRead:
    sub, _ = await service.update_status(db, sub_order_id, data.status)
    return SubOrderRead.model_validate(sub)


# -------------------------------------------------------------------
# Read
# -------------------------------------------------------------------

@router.get(
    "/",
    name="sub_order_list",
    response_model=SubOrderList,
    dependencies=can_manage,
)
async def get_sub_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status_filter: Optional[SubOrderStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    service: SubOrderService = Depends(get_sub_order_service),
) -> SubOrderList:
    sub_orders, total = await service.get_all(db, page=page, limit=limit, status=status_filter)
    return _sub_order_list(sub_orders, total, page, limit)


@router.get(
    "/order/{order_no}",
    name="sub_order_by_order",
    response_model=list[SubOrderRead],
    dependencies=can_manage,
)
async def get_by_order(
    order_no: int,
    db: AsyncSession = Depends(get_db),
    service: SubOrderService = Depends(get_sub_order_service),
) -> list[SubOrderRead]:
    return [SubOrderRead.model_validate(s) for s in await service.get_by_order_no(db, order_no)]


@router.get(
    "/client/{client_id}",
    name="sub_order_by_client",
    response_model=SubOrderList,
    dependencies=can_manage,
)
async def get_by_client(
    client_id: uuid.UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    service: SubOrderService = Depends(get_sub_order_service),
) -> SubOrderList:
    sub_orders, total = await service.get_all(db, page=page, limit=limit, client_id=client_id)
    return _sub_order_list(sub_orders, total, page, limit)


@router.get(
    "/product/{product_id}",
    name="sub_order_by_product",
    response_model=SubOrderList,
    dependencies=can_manage,
)
async def get_by_product(
    product_id: uuid.UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    service: SubOrderService = Depends(get_sub_order_service),
) -> SubOrderList:
    sub_orders, total = await service.get_all(db, page=page, limit=limit, product_id=product_id)
    return _sub_order_list(sub_orders, total, page, limit)


@router.get(
    "/status/{sub_order_status}",
    name="sub_order_by_status",
    response_model=SubOrderList,
    dependencies=can_manage,
)
async def get_by_status(
    sub_order_status: SubOrderStatus,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    service: SubOrderService = Depends(get_sub_order_service),
) -> SubOrderList:
    sub_orders, total = await service.get_all(db, page=page, limit=limit, status=sub_order_status)
    return _sub_order_list(sub_orders, total, page, limit)


@router.get(
    "/{sub_order_id}",
    name="sub_order_detail",
    response_model=SubOrderRead,
    dependencies=can_manage,
)
async def get_sub_order(
    sub_order_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: SubOrderService = Depends(get_sub_order_service),
) -> SubOrderRead:
    return SubOrderRead.model_validate(await service.get_by_id(db, sub_order_id))
