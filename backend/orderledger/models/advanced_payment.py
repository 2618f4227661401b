"""
SQLAlchemy models for advanced payments
Project: Order Ledger

A client's prepaid credit and the audit trail of its consumption.
"""

from __future__ import annotations
import datetime
import uuid
from decimal import Decimal
from enum import Enum
from typing import Optional, TYPE_CHECKING

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orderledger.models import Base
from orderledger.models.mixins import TimestampMixin, UUIDMixin, utcnow

if TYPE_CHECKING:
    from orderledger.models.client import Client


class AdvancedPaymentStatus(str, Enum):
    ACTIVE = "active"
    FULLY_USED = "fully_used"
    REFUNDED = "refunded"


class AdvancedPayment(Base, UUIDMixin, TimestampMixin):
    """
    Prepaid client credit.

    remaining_amount only goes down after creation: allocations consume it
    and a refund zeroes it.
    """

    __tablename__ = "advanced_payments"

    client_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    remaining_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    refunded_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
    )

    payment_date: Mapped[datetime.date] = mapped_column(
        Date,
        nullable=False,
        default=datetime.date.today,
    )

    payment_method: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    txn_number: Mapped[Optional[str]] = mapped_column(String(60), nullable=True)

    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    media_file_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    status: Mapped[str] = mapped_column(
        String(15),
        nullable=False,
        default=AdvancedPaymentStatus.ACTIVE.value,
    )

    client: Mapped["Client"] = relationship(
        "Client",
        back_populates="advanced_payments",
        lazy="selectin",
    )

    usage_history: Mapped[list["AdvancedPaymentUsage"]] = relationship(
        "AdvancedPaymentUsage",
        back_populates="advanced_payment",
        cascade="all, delete-orphan",
        order_by="AdvancedPaymentUsage.used_at",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_advanced_payments_amount_positive"),
        CheckConstraint("remaining_amount >= 0", name="ck_advanced_payments_remaining_non_negative"),
        CheckConstraint("remaining_amount <= amount", name="ck_advanced_payments_remaining_le_amount"),
        Index("ix_advanced_payments_client_status", "client_id", "status"),
    )

    @property
    def used_amount(self) -> Decimal:
        return self.amount - self.remaining_amount - self.refunded_amount

    def __repr__(self) -> str:
        return (
            f"<AdvancedPayment(id={self.id}, amount={self.amount}, "
            f"remaining={self.remaining_amount}, status={self.status})>"
        )


class AdvancedPaymentUsage(Base, UUIDMixin):
    """One consumption of an advance by an order."""

    __tablename__ = "advanced_payment_usages"

    advanced_payment_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("advanced_payments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    order_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("orders.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    order_no: Mapped[int] = mapped_column(Integer, nullable=False)

    transaction_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("transactions.id", ondelete="SET NULL"),
        nullable=True,
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    used_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    advanced_payment: Mapped[AdvancedPayment] = relationship(
        "AdvancedPayment",
        back_populates="usage_history",
    )

    def __repr__(self) -> str:
        return f"<AdvancedPaymentUsage(order_no={self.order_no}, amount={self.amount})>"
