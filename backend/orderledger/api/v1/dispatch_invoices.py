"""
FastAPI router for dispatch invoices
Project: Order Ledger

Listings, details, PDF regeneration and analytics. Creation lives under
/sub-order/dispatch-invoice.
"""

import uuid

from fastapi import APIRouter, Depends, Query, Response
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.api.v1.responses import pdf_response
from orderledger.core.database import get_db
from orderledger.core.deps import Capability, require_capability
from orderledger.schemas.dashboard import DispatchInvoiceAnalytics
from orderledger.schemas.sub_order import SubOrderList, SubOrderRead
from orderledger.services.dispatch_invoice_service import (
    DispatchInvoiceService,
    dispatch_invoice_service,
)
from orderledger.services.order_service import OrderService, order_service
from orderledger.services.pdf_service import PdfService, pdf_service

router = APIRouter(
    prefix="/dispatch-invoice",
    tags=["Dispatch invoices"],
    dependencies=[Depends(require_capability(Capability.DISPATCH_INVOICE_MANAGE))],
)


def get_dispatch_invoice_service() -> DispatchInvoiceService:
    return dispatch_invoice_service


def get_order_service() -> OrderService:
    return order_service


def get_pdf_service() -> PdfService:
    return pdf_service


def _invoice_list(invoices, total: int, page: int, limit: int) -> SubOrderList:
    return SubOrderList(
        items=[SubOrderRead.model_validate(i) for i in invoices],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/", name="dispatch_invoice_list", response_model=SubOrderList)
async def get_dispatch_invoices(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    service: DispatchInvoiceService = Depends(get_dispatch_invoice_service),
) -> SubOrderList:
    invoices, total = await service.get_all(db, page=page, limit=limit)
    return _invoice_list(invoices, total, page, limit)


@router.get(
    "/analytics",
    name="dispatch_invoice_analytics",
    summary="Dispatch totals, monthly breakdown and top clients",
    response_model=DispatchInvoiceAnalytics,
)
async def get_analytics(
    db: AsyncSession = Depends(get_db),
    service: DispatchInvoiceService = Depends(get_dispatch_invoice_service),
) -> DispatchInvoiceAnalytics:
    return await service.analytics(db)


@router.get("/client/{client_id}", name="dispatch_invoice_by_client", response_model=SubOrderList)
async def get_by_client(
    client_id: uuid.UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    service: DispatchInvoiceService = Depends(get_dispatch_invoice_service),
) -> SubOrderList:
    invoices, total = await service.get_all(db, page=page, limit=limit, client_id=client_id)
    return _invoice_list(invoices, total, page, limit)


@router.get("/order/{order_no}", name="dispatch_invoice_by_order", response_model=SubOrderList)
async def get_by_order(
    order_no: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    service: DispatchInvoiceService = Depends(get_dispatch_invoice_service),
) -> SubOrderList:
    invoices, total = await service.get_all(db, page=page, limit=limit, order_no=order_no)
    return _invoice_list(invoices, total, page, limit)


@router.get("/{invoice_id}", name="dispatch_invoice_detail", response_model=SubOrderRead)
async def get_dispatch_invoice(
    invoice_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: DispatchInvoiceService = Depends(get_dispatch_invoice_service),
) -> SubOrderRead:
    return SubOrderRead.model_validate(await service.get_by_id(db, invoice_id))


@router.get(
    "/{invoice_id}/pdf",
    name="dispatch_invoice_pdf",
    summary="Regenerate the invoice PDF",
    response_class=Response,
)
async def get_dispatch_invoice_pdf(
    invoice_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: DispatchInvoiceService = Depends(get_dispatch_invoice_service),
    orders: OrderService = Depends(get_order_service),
    pdf: PdfService = Depends(get_pdf_service),
) -> Response:
    invoice = await service.get_by_id(db, invoice_id)
    order = await orders.get_by_id(db, invoice.order_id)
    content = await run_in_threadpool(pdf.dispatch_invoice, invoice, order)
    return pdf_response(content, f"{invoice.invoice_no}.pdf")
