"""
Pydantic schemas for transactions
Project: Order Ledger
"""

import datetime
import uuid
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from orderledger.models.transaction import PaymentMethod, TransactionType
from orderledger.schemas.common import PaginatedList


class TransactionCreate(BaseModel):
    """
    Payment against an order.

    Sent as multipart form fields so a proof-of-payment file can travel
    with it.
    """

    client_id: uuid.UUID
    order_id: uuid.UUID
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    transaction_date: datetime.date = Field(default_factory=datetime.date.today)
    transaction_type: TransactionType = TransactionType.CASH
    payment_method: Optional[PaymentMethod] = None
    txn_number: Optional[str] = Field(None, max_length=60)
    remarks: Optional[str] = Field(None, max_length=1000)


class TransactionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    client_id: uuid.UUID
    order_id: uuid.UUID
    amount: Decimal
    transaction_date: datetime.date
    transaction_type: TransactionType
    payment_method: Optional[str]
    txn_number: Optional[str]
    remarks: Optional[str]
    media_file_url: Optional[str]
    advanced_payment_id: Optional[uuid.UUID]
    created_at: datetime.datetime


class OrderTransactions(BaseModel):
    """Transaction list of an order with its running balance."""

    order_id: uuid.UUID
    order_no: int
    total_amount: Decimal
    paid_amount: Decimal
    remaining_amount: Decimal
    txn_status: str
    transactions: list[TransactionRead]


class TransactionList(PaginatedList):
    items: list[TransactionRead]
