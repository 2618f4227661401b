"""
Pydantic schemas for User
Project: Order Ledger
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from orderledger.models.user import UserRole


class UserCreate(BaseModel):
    """
    New panel user.

    The first registered user is always promoted to admin.
    """

    email: EmailStr = Field(..., description="Unique login email")
    password: str = Field(min_length=8, max_length=100, description="Plain-text password")
    full_name: str = Field(min_length=1, max_length=100, description="Display name")
    role: UserRole = Field(default=UserRole.SUB_ADMIN, description="User role")


class UserLogin(BaseModel):
    email: EmailStr = Field(..., description="Login email")
    password: str = Field(..., description="Plain-text password")


class UserUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=100)
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    full_name: str
    role: UserRole
    is_active: bool
    created_at: datetime


__all__ = [
    "UserCreate",
    "UserLogin",
    "UserUpdate",
    "UserResponse",
]
