"""
FastAPI router for advanced payments
Project: Order Ledger

Client prepaid credit: creation with an optional direct allocation,
balance, manual use, refund, receipts and analytics.
"""

import datetime
import logging
import uuid
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.api.v1.responses import build_form_model, pdf_response
from orderledger.core.database import get_db
from orderledger.core.deps import Capability, require_capability
from orderledger.models.advanced_payment import AdvancedPaymentStatus
from orderledger.models.transaction import PaymentMethod
from orderledger.schemas.advanced_payment import (
    AdvanceBalance,
    AdvancedPaymentCreate,
    AdvancedPaymentCreationResponse,
    AdvancedPaymentRead,
    AdvancedPaymentRefund,
    AdvancedPaymentUse,
    AllClientsAdvanceAnalytics,
    AllocationResult,
    ClientAdvanceAnalytics,
)
from orderledger.services.advanced_payment_service import (
    AdvancedPaymentService,
    advanced_payment_service,
)
from orderledger.services.pdf_service import PdfService, pdf_service
from orderledger.services.post_commit import PostCommitHooks

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/advanced-payment",
    tags=["Advanced payments"],
)

can_manage = [Depends(require_capability(Capability.ADVANCED_PAYMENT_MANAGE))]
can_analyse = [Depends(require_capability(Capability.ADVANCED_PAYMENT_ANALYTICS))]


def get_advanced_payment_service() -> AdvancedPaymentService:
    return advanced_payment_service


def get_pdf_service() -> PdfService:
    return pdf_service


@router.post(
    "/",
    name="advanced_payment_create",
    summary="Record an advance",
    description=(
        "Returns the receipt PDF. When the PDF cannot be rendered the advance "
        "is still recorded and a JSON body with pdf_error is returned."
    ),
    status_code=status.HTTP_201_CREATED,
    responses={
        201: {
            "content": {"application/pdf": {}},
            "model": AdvancedPaymentCreationResponse,
        }
    },
    dependencies=can_manage,
)
async def create_advanced_payment(
    client_id: uuid.UUID = Form(...),
    amount: Decimal = Form(...),
    payment_date: Optional[datetime.date] = Form(None),
    payment_method: Optional[PaymentMethod] = Form(None),
    txn_number: Optional[str] = Form(None),
    remarks: Optional[str] = Form(None),
    order_id: Optional[uuid.UUID] = Form(None, description="Apply straight to this order"),
    proof: Optional[UploadFile] = File(None),
    as_json: bool = Query(False, description="Skip the receipt and answer with JSON"),
    db: AsyncSession = Depends(get_db),
    service: AdvancedPaymentService = Depends(get_advanced_payment_service),
    pdf: PdfService = Depends(get_pdf_service),
) -> Response:
    data = build_form_model(
        AdvancedPaymentCreate,
        client_id=client_id,
        amount=amount,
        payment_date=payment_date,
        payment_method=payment_method,
        txn_number=txn_number,
        remarks=remarks,
        order_id=order_id,
    )
    advance, allocation = await service.create(db, data, proof=proof)

    body = AdvancedPaymentCreationResponse(
        advanced_payment=AdvancedPaymentRead.model_validate(advance),
        allocation=allocation,
    )
    if as_json:
        return JSONResponse(status_code=status.HTTP_201_CREATED, content=body.model_dump(mode="json"))

    hooks = PostCommitHooks()
    hooks.add("receipt", lambda: run_in_threadpool(pdf.advanced_payment_receipt, advance))
    report = await hooks.run()

    if not report.ok:
        body.pdf_error = report.error_for("receipt")
        return JSONResponse(status_code=status.HTTP_201_CREATED, content=body.model_dump(mode="json"))

    response = pdf_response(
        report.result("receipt"),
        f"advance-{str(advance.id)[-8:]}.pdf",
        headers={"X-Advanced-Payment-Id": str(advance.id)},
    )
    response.status_code = status.HTTP_201_CREATED
    return response


@router.get(
    "/analytics",
    name="advanced_payment_analytics",
    summary="Advance totals for all clients",
    response_model=AllClientsAdvanceAnalytics,
    dependencies=can_analyse,
)
async def get_all_analytics(
    db: AsyncSession = Depends(get_db),
    service: AdvancedPaymentService = Depends(get_advanced_payment_service),
) -> AllClientsAdvanceAnalytics:
    return await service.all_analytics(db)


@router.get(
    "/analytics/client/{client_id}",
    name="advanced_payment_client_analytics",
    response_model=ClientAdvanceAnalytics,
    dependencies=can_analyse,
)
async def get_client_analytics(
    client_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: AdvancedPaymentService = Depends(get_advanced_payment_service),
) -> ClientAdvanceAnalytics:
    return await service.client_analytics(db, client_id)


@router.get(
    "/client/{client_id}",
    name="advanced_payment_by_client",
    response_model=list[AdvancedPaymentRead],
    dependencies=can_manage,
)
async def get_client_advances(
    client_id: uuid.UUID,
    status_filter: Optional[AdvancedPaymentStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    service: AdvancedPaymentService = Depends(get_advanced_payment_service),
) -> list[AdvancedPaymentRead]:
    payments = await service.list_by_client(db, client_id, status=status_filter)
    return [AdvancedPaymentRead.model_validate(p) for p in payments]


@router.get(
    "/client/{client_id}/balance",
    name="advanced_payment_balance",
    summary="Credit still available to a client",
    response_model=AdvanceBalance,
    dependencies=can_manage,
)
async def get_client_balance(
    client_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: AdvancedPaymentService = Depends(get_advanced_payment_service),
) -> AdvanceBalance:
    return await service.balance(db, client_id)


@router.get(
    "/{advance_id}",
    name="advanced_payment_detail",
    response_model=AdvancedPaymentRead,
    dependencies=can_manage,
)
async def get_advanced_payment(
    advance_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: AdvancedPaymentService = Depends(get_advanced_payment_service),
) -> AdvancedPaymentRead:
    return AdvancedPaymentRead.model_validate(await service.get_by_id(db, advance_id))


@router.get(
    "/{advance_id}/receipt",
    name="advanced_payment_receipt",
    response_class=Response,
    dependencies=can_manage,
)
async def get_advanced_payment_receipt(
    advance_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: AdvancedPaymentService = Depends(get_advanced_payment_service),
    pdf: PdfService = Depends(get_pdf_service),
) -> Response:
    advance = await service.get_by_id(db, advance_id)
    content = await run_in_threadpool(pdf.advanced_payment_receipt, advance)
    return pdf_response(content, f"advance-{str(advance.id)[-8:]}.pdf")


@router.post(
    "/{advance_id}/use",
    name="advanced_payment_use",
    summary="Apply an advance to an order",
    response_model=AllocationResult,
    dependencies=can_manage,
)
async def use_advanced_payment(
    advance_id: uuid.UUID,
    data: AdvancedPaymentUse,
    db: AsyncSession = Depends(get_db),
    service: AdvancedPaymentService = Depends(get_advanced_payment_service),
) -> AllocationResult:
    """
    Raises:
        BadRequestError: advance not active, amount above the advance
            balance or the order's outstanding amount
    """
    return await service.use(db, advance_id, data)


@router.post(
    "/{advance_id}/refund",
    name="advanced_payment_refund",
    summary="Refund the unused balance",
    response_model=AdvancedPaymentRead,
    dependencies=can_manage,
)
async def refund_advanced_payment(
    advance_id: uuid.UUID,
    data: Optional[AdvancedPaymentRefund] = None,
    db: AsyncSession = Depends(get_db),
    service: AdvancedPaymentService = Depends(get_advanced_payment_service),
) -> AdvancedPaymentRead:
    advance = await service.refund(db, advance_id, remarks=data.remarks if data else None)
    return AdvancedPaymentRead.model_validate(advance)
