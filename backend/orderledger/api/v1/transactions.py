"""
FastAPI router for Transaction
Project: Order Ledger

Payments against orders. Creation is multipart so a proof-of-payment file
can be attached.
"""

import datetime
import uuid
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.api.v1.responses import build_form_model, pdf_response
from orderledger.core.database import get_db
from orderledger.core.deps import Capability, require_capability
from orderledger.models.transaction import PaymentMethod, TransactionType
from orderledger.schemas.transaction import OrderTransactions, TransactionCreate, TransactionRead
from orderledger.services.order_service import OrderService, order_service
from orderledger.services.pdf_service import PdfService, pdf_service
from orderledger.services.transaction_service import TransactionService, transaction_service

router = APIRouter(
    prefix="/transaction",
    tags=["Transactions"],
    dependencies=[Depends(require_capability(Capability.TRANSACTION_MANAGE))],
)


def get_transaction_service() -> TransactionService:
    return transaction_service


def get_order_service() -> OrderService:
    return order_service


def get_pdf_service() -> PdfService:
    return pdf_service


@router.post(
    "/",
    name="transaction_create",
    summary="Record a payment",
    response_model=TransactionRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_transaction(
    client_id: uuid.UUID = Form(...),
    order_id: uuid.UUID = Form(...),
    amount: Decimal = Form(...),
    transaction_date: Optional[datetime.date] = Form(None),
    transaction_type: TransactionType = Form(TransactionType.CASH),
    payment_method: Optional[PaymentMethod] = Form(None),
    txn_number: Optional[str] = Form(None),
    remarks: Optional[str] = Form(None),
    proof: Optional[UploadFile] = File(None, description="Proof of payment (jpeg, png or pdf, max 5 MB)"),
    db: AsyncSession = Depends(get_db),
    service: TransactionService = Depends(get_transaction_service),
) -> TransactionRead:
    """
    Raises:
        BadRequestError: overpayment, cancelled order, order of another
            client, unsupported or oversized proof file
    """
    data = build_form_model(
        TransactionCreate,
        client_id=client_id,
        order_id=order_id,
        amount=amount,
        transaction_date=transaction_date,
        transaction_type=transaction_type,
        payment_method=payment_method,
        txn_number=txn_number,
        remarks=remarks,
    )
    txn = await service.create(db, data, proof=proof)
    return TransactionRead.model_validate(txn)


@router.get(
    "/order/{order_id}",
    name="transaction_by_order",
    summary="Payments of an order",
    response_model=OrderTransactions,
)
async def get_order_transactions(
    order_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: TransactionService = Depends(get_transaction_service),
) -> OrderTransactions:
    order, txns = await service.list_by_order(db, order_id)
    return OrderTransactions(
        order_id=order.id,
        order_no=order.order_no,
        total_amount=order.total_amount,
        paid_amount=order.paid_amount,
        remaining_amount=order.remaining_amount,
        txn_status=order.txn_status,
        transactions=[TransactionRead.model_validate(t) for t in txns],
    )


@router.get(
    "/{transaction_id}",
    name="transaction_detail",
    response_model=TransactionRead,
)
async def get_transaction(
    transaction_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: TransactionService = Depends(get_transaction_service),
) -> TransactionRead:
    return TransactionRead.model_validate(await service.get_by_id(db, transaction_id))


@router.get(
    "/{transaction_id}/receipt",
    name="transaction_receipt",
    summary="Payment receipt PDF",
    response_class=Response,
)
async def get_transaction_receipt(
    transaction_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: TransactionService = Depends(get_transaction_service),
    orders: OrderService = Depends(get_order_service),
    pdf: PdfService = Depends(get_pdf_service),
) -> Response:
    txn = await service.get_by_id(db, transaction_id)
    order = await orders.get_by_id(db, txn.order_id)
    content = await run_in_threadpool(pdf.transaction_receipt, txn, order)
    return pdf_response(content, f"receipt-{order.order_no}-{str(txn.id)[-8:]}.pdf")


@router.delete(
    "/{transaction_id}",
    name="transaction_delete",
    summary="Delete a payment",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_transaction(
    transaction_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: TransactionService = Depends(get_transaction_service),
) -> None:
    """
    Restores the order balance. Payments taken from an advance cannot be
    deleted here.
    """
    await service.delete(db, transaction_id)
