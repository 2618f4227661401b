"""
Pydantic schemas for products and product groups
Project: Order Ledger
"""

import datetime
import uuid
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from orderledger.models.product import UnitType
from orderledger.schemas.common import PaginatedList


# -------------------------------------------------------------------
# Product groups
# -------------------------------------------------------------------

class ProductGroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None


class ProductGroupUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class ProductGroupRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str]
    is_active: bool
    created_at: datetime.datetime


class ProductGroupList(PaginatedList):
    items: list[ProductGroupRead]


# -------------------------------------------------------------------
# Products
# -------------------------------------------------------------------

class ProductBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    alias: Optional[str] = Field(None, max_length=100)
    product_group_id: Optional[uuid.UUID] = None
    unit_type: UnitType = UnitType.NOS
    rate_per_unit: Decimal = Field(Decimal("0.00"), ge=0, decimal_places=2)
    number_of_items: Optional[int] = Field(None, ge=1)
    number_of_units: Optional[int] = Field(None, ge=1)

    @model_validator(mode="after")
    def check_alternate_units(self):
        """Alternate units are given as a pair or not at all."""
        if (self.number_of_items is None) != (self.number_of_units is None):
            raise ValueError("number_of_items and number_of_units must be set together")
        return self


class ProductCreate(ProductBase):
    pass


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    alias: Optional[str] = Field(None, max_length=100)
    product_group_id: Optional[uuid.UUID] = None
    unit_type: Optional[UnitType] = None
    rate_per_unit: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    number_of_items: Optional[int] = Field(None, ge=1)
    number_of_units: Optional[int] = Field(None, ge=1)


class ProductRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    alias: Optional[str]
    product_group_id: Optional[uuid.UUID]
    group: Optional[ProductGroupRead] = None
    unit_type: UnitType
    rate_per_unit: Decimal
    number_of_items: Optional[int]
    number_of_units: Optional[int]
    is_active: bool
    created_at: datetime.datetime


class ProductList(PaginatedList):
    items: list[ProductRead]
