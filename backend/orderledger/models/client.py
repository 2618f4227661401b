"""
SQLAlchemy model for Client
Project: Order Ledger

Customer master data.
"""


from __future__ import annotations
from typing import Optional, TYPE_CHECKING

from sqlalchemy import Index, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orderledger.models import Base
from orderledger.models.mixins import TimestampMixin, UUIDMixin, SoftDeleteMixin

if TYPE_CHECKING:
    from orderledger.models.order import Order
    from orderledger.models.advanced_payment import AdvancedPayment


class Client(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """
    Customer.

    Attributes:
        client_no: Sequential human-facing number
        name: Name or company name
        alias: Short name used in search
        email: Contact email (unique when present)
        mobile: Contact mobile number
        correspondence_address: {country, state, city, area, postal_code, landmark}
        permanent_address: Same shape as correspondence_address

    Relationships:
        orders: Orders placed by the client
        advanced_payments: Prepaid credit held by the client
    """

    __tablename__ = "clients"

    client_no: Mapped[int] = mapped_column(
        Integer,
        unique=True,
        nullable=False,
        doc="Sequential client number",
    )

    name: Mapped[str] = mapped_column(
        String(150),
        nullable=False,
        doc="Name or company name",
    )

    alias: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
    )

    email: Mapped[Optional[str]] = mapped_column(
        String(255),
        unique=True,
        nullable=True,
        doc="Contact email, unique when present",
    )

    mobile: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
    )

    # ------------------------------------------------------------
    # Addresses
    # ------------------------------------------------------------
    correspondence_address: Mapped[Optional[dict]] = mapped_column(
        JSON,
        nullable=True,
    )

    permanent_address: Mapped[Optional[dict]] = mapped_column(
        JSON,
        nullable=True,
    )

    # ------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------
    orders: Mapped[list["Order"]] = relationship(
        "Order",
        back_populates="client",
        lazy="noload",
    )

    advanced_payments: Mapped[list["AdvancedPayment"]] = relationship(
        "AdvancedPayment",
        back_populates="client",
        lazy="noload",
    )

    __table_args__ = (
        Index("ix_clients_name", "name"),
        Index("ix_clients_is_active", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<Client(id={self.id}, client_no={self.client_no}, name={self.name})>"
