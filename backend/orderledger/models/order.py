"""
SQLAlchemy models for orders and dispatches
Project: Order Ledger

Order is a client's multi-line purchase. OrderLine tracks the ordered and
still-to-dispatch quantity per product. SubOrder records a dispatch
against the order (or, as a dispatch invoice, a shipment snapshot).
"""

from __future__ import annotations
import datetime
import uuid
from decimal import Decimal
from enum import Enum
from typing import Optional, TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orderledger.models import Base
from orderledger.models.mixins import TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from orderledger.models.client import Client
    from orderledger.models.product import Product


class OrderStatus(str, Enum):
    """Dispatch progress of an order."""
    PENDING = "PENDING"
    PARTIALLY_DISPATCHED = "PARTIALLY_DISPATCHED"
    COMPLETED = "COMPLETED"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


class TxnStatus(str, Enum):
    """Payment progress of an order."""
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    COMPLETED = "COMPLETED"


class SubOrderStatus(str, Enum):
    PENDING = "PENDING"
    DISPATCHED = "DISPATCHED"
    COMPLETED = "COMPLETED"


class SubOrderType(str, Enum):
    DISPATCH = "DISPATCH"
    DISPATCH_INVOICE = "DISPATCH_INVOICE"


class Order(Base, UUIDMixin, TimestampMixin):
    """
    Client order.

    `status` follows dispatch, `txn_status` follows payment. The two are
    combined by ledger_rules.settlement_status.

    Invariants:
        remaining_amount >= 0
        sum(line.remaining_quantity) == remaining_quantity
    """

    __tablename__ = "orders"

    order_no: Mapped[int] = mapped_column(
        Integer,
        unique=True,
        nullable=False,
        doc="Sequential order number",
    )

    client_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    order_date: Mapped[datetime.date] = mapped_column(
        Date,
        nullable=False,
        default=datetime.date.today,
    )

    due_date: Mapped[Optional[datetime.date]] = mapped_column(
        Date,
        nullable=True,
    )

    status: Mapped[str] = mapped_column(
        String(25),
        nullable=False,
        default=OrderStatus.PENDING.value,
    )

    txn_status: Mapped[str] = mapped_column(
        String(15),
        nullable=False,
        default=TxnStatus.PENDING.value,
    )

    # ------------------------------------------------------------
    # Quantities
    # ------------------------------------------------------------
    quantity: Mapped[Decimal] = mapped_column(
        Numeric(12, 3),
        nullable=False,
        default=Decimal("0"),
    )

    remaining_quantity: Mapped[Decimal] = mapped_column(
        Numeric(12, 3),
        nullable=False,
        default=Decimal("0"),
    )

    # ------------------------------------------------------------
    # Amounts
    # ------------------------------------------------------------
    subtotal: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
    )

    gst_enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    gst_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        nullable=False,
        default=Decimal("0.00"),
    )

    gst_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
    )

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
    )

    remaining_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Unpaid balance, reduced only by payments and advance allocations",
    )

    dispatched_value: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Value of the goods dispatched so far",
    )

    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------
    client: Mapped["Client"] = relationship(
        "Client",
        back_populates="orders",
        lazy="selectin",
    )

    lines: Mapped[list["OrderLine"]] = relationship(
        "OrderLine",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLine.line_no",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("remaining_amount >= 0", name="ck_orders_remaining_amount_non_negative"),
        CheckConstraint("remaining_quantity >= 0", name="ck_orders_remaining_quantity_non_negative"),
        Index("ix_orders_status", "status"),
        Index("ix_orders_order_date", "order_date"),
    )

    @property
    def paid_amount(self) -> Decimal:
        return self.total_amount - self.remaining_amount

    def get_line(self, product_id: uuid.UUID) -> Optional["OrderLine"]:
        """First line for `product_id`, or None."""
        for line in self.lines:
            if line.product_id == product_id:
                return line
        return None

    def __repr__(self) -> str:
        return f"<Order(order_no={self.order_no}, status={self.status}, txn_status={self.txn_status})>"


class OrderLine(Base, UUIDMixin):
    """Single product line of an order."""

    __tablename__ = "order_lines"

    order_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    line_no: Mapped[int] = mapped_column(Integer, nullable=False)

    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
    )

    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)

    remaining_quantity: Mapped[Decimal] = mapped_column(
        Numeric(12, 3),
        nullable=False,
        doc="Quantity still to dispatch",
    )

    unit_type: Mapped[str] = mapped_column(String(20), nullable=False)

    rate_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    discount: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Discount percentage",
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    order: Mapped[Order] = relationship("Order", back_populates="lines")

    product: Mapped["Product"] = relationship("Product", lazy="selectin")

    __table_args__ = (
        CheckConstraint("remaining_quantity >= 0", name="ck_order_lines_remaining_non_negative"),
        CheckConstraint("remaining_quantity <= quantity", name="ck_order_lines_remaining_le_quantity"),
    )

    @property
    def product_name(self) -> Optional[str]:
        return self.product.name if self.product is not None else None

    @property
    def unit_price(self) -> Decimal:
        """Effective price per unit after discount."""
        if not self.quantity:
            return self.rate_price
        return self.amount / self.quantity

    def __repr__(self) -> str:
        return f"<OrderLine(line_no={self.line_no}, qty={self.quantity}, remaining={self.remaining_quantity})>"


class SubOrder(Base, UUIDMixin, TimestampMixin):
    """
    Dispatch record.

    DISPATCH rows move quantity off an order line. DISPATCH_INVOICE rows
    only carry the shipment snapshot in `dispatch_info` (vehicle,
    consignee, buyer, GST flag and the product list with rate and amount
    at dispatch time).
    """

    __tablename__ = "sub_orders"

    order_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    order_no: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    client_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    quantity: Mapped[Decimal] = mapped_column(
        Numeric(12, 3),
        nullable=False,
        default=Decimal("0"),
    )

    unit_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    status: Mapped[str] = mapped_column(
        String(15),
        nullable=False,
        default=SubOrderStatus.PENDING.value,
        index=True,
    )

    sub_order_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=SubOrderType.DISPATCH.value,
    )

    dispatch_date: Mapped[datetime.date] = mapped_column(
        Date,
        nullable=False,
        default=datetime.date.today,
    )

    dispatched_value: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
    )

    invoice_no: Mapped[Optional[str]] = mapped_column(String(40), nullable=True, unique=True)

    dispatch_info: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    product: Mapped[Optional["Product"]] = relationship("Product", lazy="selectin")

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_sub_orders_quantity_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<SubOrder(order_no={self.order_no}, type={self.sub_order_type}, status={self.status})>"
