"""
Pydantic schemas for Client
Project: Order Ledger

Validation and serialization schemas for the client API.
"""

import datetime
import re
import uuid
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
)

from orderledger.schemas.common import PaginatedList

_MOBILE_RE = re.compile(r"^\+?[0-9]{7,15}$")


# -------------------------------------------------------------------
# Normalization helpers
# -------------------------------------------------------------------

def normalize_mobile(value: Optional[str]) -> Optional[str]:
    """
    Strip spaces, dashes and parentheses from a mobile number.

    Raises:
        ValueError: if the result is not 7-15 digits with an optional leading +
    """
    if value is None:
        return None
    cleaned = re.sub(r"[\s\-()]", "", value)
    if not cleaned:
        return None
    if not _MOBILE_RE.match(cleaned):
        raise ValueError("Mobile number must contain 7 to 15 digits")
    return cleaned


class Address(BaseModel):
    country: Optional[str] = Field(None, max_length=60)
    state: Optional[str] = Field(None, max_length=60)
    city: Optional[str] = Field(None, max_length=80)
    area: Optional[str] = Field(None, max_length=120)
    postal_code: Optional[str] = Field(None, max_length=12)
    landmark: Optional[str] = Field(None, max_length=120)


class ClientBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=150, description="Name or company name")
    alias: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None
    mobile: Optional[str] = Field(None, max_length=20)
    correspondence_address: Optional[Address] = None
    permanent_address: Optional[Address] = None

    @field_validator("name", "alias")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        return v or None

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v

    @field_validator("mobile")
    @classmethod
    def validate_mobile(cls, v: Optional[str]) -> Optional[str]:
        return normalize_mobile(v)


class ClientCreate(ClientBase):
    """Payload for a new client. client_no is assigned by the server."""


class ClientUpdate(BaseModel):
    """Partial update: only the fields sent are changed."""

    name: Optional[str] = Field(None, min_length=1, max_length=150)
    alias: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None
    mobile: Optional[str] = Field(None, max_length=20)
    correspondence_address: Optional[Address] = None
    permanent_address: Optional[Address] = None

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v

    @field_validator("mobile")
    @classmethod
    def validate_mobile(cls, v: Optional[str]) -> Optional[str]:
        return normalize_mobile(v)


class ClientRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    client_no: int
    name: str
    alias: Optional[str]
    email: Optional[str]
    mobile: Optional[str]
    correspondence_address: Optional[Address]
    permanent_address: Optional[Address]
    is_active: bool
    created_at: datetime.datetime
    updated_at: datetime.datetime


class ClientSummary(BaseModel):
    """Compact client embedded in order and payment responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    client_no: int
    name: str
    alias: Optional[str] = None
    mobile: Optional[str] = None


class ClientList(PaginatedList):
    items: list[ClientRead]
