"""
SQLAlchemy models for the product catalogue
Project: Order Ledger

ProductGroup groups products; Product carries the unit type and the
default rate used to price order lines.
"""

from __future__ import annotations
import uuid
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orderledger.models import Base
from orderledger.models.mixins import TimestampMixin, UUIDMixin, SoftDeleteMixin


class UnitType(str, Enum):
    """Units a product is sold in."""
    SQUARE_FEET = "SQUARE_FEET"
    SQUARE_METER = "SQUARE_METER"
    NOS = "NOS"
    SET = "SET"


class ProductGroup(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """Product category."""

    __tablename__ = "product_groups"

    name: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<ProductGroup(id={self.id}, name={self.name})>"


class Product(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """
    Catalogue product.

    Attributes:
        name: Product name
        alias: Short name
        product_group_id: FK to product_groups
        unit_type: Selling unit (UnitType)
        rate_per_unit: Default price per unit
        number_of_items / number_of_units: Alternate unit conversion
            (e.g. 1 box = 10 items)
    """

    __tablename__ = "products"

    name: Mapped[str] = mapped_column(
        String(150),
        nullable=False,
    )

    alias: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
    )

    product_group_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("product_groups.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    unit_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=UnitType.NOS.value,
    )

    rate_per_unit: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
    )

    number_of_items: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    number_of_units: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    group: Mapped[Optional[ProductGroup]] = relationship(
        "ProductGroup",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("rate_per_unit >= 0", name="ck_products_rate_non_negative"),
        Index("ix_products_name", "name"),
    )

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name={self.name}, unit={self.unit_type})>"
