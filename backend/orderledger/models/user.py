"""
SQLAlchemy model for User
Project: Order Ledger

Users who sign in to the admin panel.
"""

from __future__ import annotations
from enum import Enum

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from orderledger.models import Base
from orderledger.models.mixins import TimestampMixin, UUIDMixin


class UserRole(str, Enum):
    """User roles."""
    ADMIN = "admin"
    SUB_ADMIN = "sub-admin"


class User(Base, UUIDMixin, TimestampMixin):
    """
    Panel user.

    Attributes:
        email: Unique login email
        hashed_password: bcrypt hash
        full_name: Display name
        role: admin or sub-admin
        is_active: Disabled users cannot sign in
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        doc="Unique login email",
    )

    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    full_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=UserRole.SUB_ADMIN.value,
        index=True,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
