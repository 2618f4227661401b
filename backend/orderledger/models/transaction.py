"""
SQLAlchemy model for Transaction
Project: Order Ledger

A payment recorded against an order.
"""

from __future__ import annotations
import datetime
import uuid
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from orderledger.models import Base
from orderledger.models.mixins import TimestampMixin, UUIDMixin


class TransactionType(str, Enum):
    CASH = "cash"
    ONLINE = "online"
    ADVANCED_PAYMENT = "advanced_payment"


class PaymentMethod(str, Enum):
    CASH = "cash"
    UPI = "upi"
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"
    CARD = "card"
    OTHER = "other"


class Transaction(Base, UUIDMixin, TimestampMixin):
    """
    Payment event.

    The rows sharing an order_id form the order's transaction list.
    Rows with advanced_payment_id set come from an advance allocation.
    """

    __tablename__ = "transactions"

    client_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    order_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("orders.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    transaction_date: Mapped[datetime.date] = mapped_column(
        Date,
        nullable=False,
        default=datetime.date.today,
    )

    transaction_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=TransactionType.CASH.value,
    )

    payment_method: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    txn_number: Mapped[Optional[str]] = mapped_column(String(60), nullable=True)

    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    media_file_url: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        doc="Storage key of the proof of payment",
    )

    advanced_payment_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("advanced_payments.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
        Index("ix_transactions_transaction_date", "transaction_date"),
    )

    @property
    def is_advance_allocation(self) -> bool:
        return self.advanced_payment_id is not None

    def __repr__(self) -> str:
        return f"<Transaction(id={self.id}, order_id={self.order_id}, amount={self.amount})>"
