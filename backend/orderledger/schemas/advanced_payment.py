"""
Pydantic schemas for advanced payments
Project: Order Ledger
"""

import datetime
import uuid
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from orderledger.models.advanced_payment import AdvancedPaymentStatus
from orderledger.models.transaction import PaymentMethod
from orderledger.schemas.client import ClientSummary


class AdvancedPaymentCreate(BaseModel):
    """
    New advance. When order_id is given, the credit is applied to that
    order straight away, up to its outstanding amount.
    """

    client_id: uuid.UUID
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    payment_date: datetime.date = Field(default_factory=datetime.date.today)
    payment_method: Optional[PaymentMethod] = None
    txn_number: Optional[str] = Field(None, max_length=60)
    remarks: Optional[str] = Field(None, max_length=1000)
    order_id: Optional[uuid.UUID] = None


class AdvancedPaymentUse(BaseModel):
    """Manual use of an advance against an order. Without amount, as much as possible."""

    order_id: uuid.UUID
    amount: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    remarks: Optional[str] = Field(None, max_length=500)


class UsageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_id: uuid.UUID
    order_no: int
    transaction_id: Optional[uuid.UUID]
    amount: Decimal
    used_at: datetime.datetime
    remarks: Optional[str]


class AdvancedPaymentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    client_id: uuid.UUID
    client: Optional[ClientSummary] = None
    amount: Decimal
    remaining_amount: Decimal
    used_amount: Decimal
    refunded_amount: Decimal
    payment_date: datetime.date
    payment_method: Optional[str]
    txn_number: Optional[str]
    remarks: Optional[str]
    media_file_url: Optional[str]
    status: AdvancedPaymentStatus
    usage_history: list[UsageRead] = Field(default_factory=list)
    created_at: datetime.datetime


class AllocationRead(BaseModel):
    advanced_payment_id: uuid.UUID
    transaction_id: uuid.UUID
    order_id: uuid.UUID
    order_no: int
    amount: Decimal


class AllocationResult(BaseModel):
    total_allocated: Decimal = Decimal("0.00")
    allocations: list[AllocationRead] = Field(default_factory=list)


class AdvancedPaymentCreationResponse(BaseModel):
    """JSON fallback when the receipt PDF could not be rendered."""

    advanced_payment: AdvancedPaymentRead
    allocation: Optional[AllocationResult] = None
    pdf_error: Optional[str] = None


class AdvanceBalance(BaseModel):
    client_id: uuid.UUID
    available_balance: Decimal
    active_payments: int


class ClientAdvanceAnalytics(BaseModel):
    client_id: uuid.UUID
    client_name: str
    total_advanced: Decimal
    total_used: Decimal
    total_remaining: Decimal
    total_refunded: Decimal
    count_by_status: dict[str, int]
    payments: list[AdvancedPaymentRead] = Field(default_factory=list)


class ClientAdvanceRow(BaseModel):
    client_id: uuid.UUID
    client_name: str
    total_advanced: Decimal
    total_used: Decimal
    total_remaining: Decimal
    payment_count: int


class AllClientsAdvanceAnalytics(BaseModel):
    total_advanced: Decimal
    total_used: Decimal
    total_remaining: Decimal
    client_count: int
    clients: list[ClientAdvanceRow] = Field(default_factory=list)


class AdvancedPaymentRefund(BaseModel):
    remarks: Optional[str] = Field(None, max_length=500)
