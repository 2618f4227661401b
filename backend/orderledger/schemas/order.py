"""
Pydantic schemas for orders
Project: Order Ledger

Validation and serialization schemas for the order API.
"""

import datetime
import uuid
from decimal import Decimal
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from orderledger.models.order import OrderStatus, TxnStatus
from orderledger.models.product import UnitType
from orderledger.schemas.client import ClientSummary
from orderledger.schemas.common import PaginatedList
from orderledger.services.ledger_rules import SettlementStatus, settlement_status


# -------------------------------------------------------------------
# Input
# -------------------------------------------------------------------

class OrderLineCreate(BaseModel):
    """
    One product line.

    rate_price defaults to the product's rate_per_unit and unit_type to the
    product's unit.
    """

    product_id: uuid.UUID
    quantity: Decimal = Field(..., gt=0, decimal_places=3)
    unit_type: Optional[UnitType] = None
    rate_price: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    discount: Decimal = Field(Decimal("0"), ge=0, le=100, decimal_places=2)


class OrderCreate(BaseModel):
    client_id: uuid.UUID
    order_date: datetime.date = Field(default_factory=datetime.date.today)
    due_date: Optional[datetime.date] = None
    products: list[OrderLineCreate] = Field(..., min_length=1)
    gst_enabled: bool = False
    gst_rate: Optional[Decimal] = Field(None, ge=0, le=100, decimal_places=2)
    remarks: Optional[str] = Field(None, max_length=2000)

    @field_validator("products")
    @classmethod
    def one_line_per_product(cls, v: list[OrderLineCreate]) -> list[OrderLineCreate]:
        """Dispatches address lines by product_id."""
        seen: set[uuid.UUID] = set()
        for line in v:
            if line.product_id in seen:
                raise ValueError(f"Product {line.product_id} appears more than once")
            seen.add(line.product_id)
        return v

    @model_validator(mode="after")
    def check_dates(self):
        if self.due_date and self.due_date < self.order_date:
            raise ValueError("due_date cannot be before order_date")
        return self


class OrderStatusUpdate(BaseModel):
    status: OrderStatus

    @field_validator("status")
    @classmethod
    def only_manual_statuses(cls, v: OrderStatus) -> OrderStatus:
        """PENDING/PARTIALLY_DISPATCHED/COMPLETED follow dispatch progress."""
        if v not in (OrderStatus.CLOSED, OrderStatus.CANCELLED):
            raise ValueError("Only CLOSED or CANCELLED can be set manually")
        return v


# -------------------------------------------------------------------
# Output
# -------------------------------------------------------------------

class OrderLineRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    line_no: int
    product_id: uuid.UUID
    product_name: Optional[str] = None
    quantity: Decimal
    remaining_quantity: Decimal
    unit_type: str
    rate_price: Decimal
    discount: Decimal
    amount: Decimal


class OrderRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_no: int
    client_id: uuid.UUID
    client: Optional[ClientSummary] = None
    order_date: datetime.date
    due_date: Optional[datetime.date]
    status: OrderStatus
    txn_status: TxnStatus
    quantity: Decimal
    remaining_quantity: Decimal
    subtotal: Decimal
    gst_enabled: bool
    gst_rate: Decimal
    gst_amount: Decimal
    total_amount: Decimal
    remaining_amount: Decimal
    dispatched_value: Decimal
    remarks: Optional[str]
    lines: list[OrderLineRead] = Field(default_factory=list)
    created_at: datetime.datetime
    updated_at: datetime.datetime

    @computed_field
    @property
    def paid_amount(self) -> Decimal:
        return self.total_amount - self.remaining_amount

    @computed_field
    @property
    def settlement_status(self) -> SettlementStatus:
        return settlement_status(self.status.value, self.txn_status.value)


class OrderList(PaginatedList):
    items: list[OrderRead]


class OrderCreationResponse(BaseModel):
    """
    Created order plus the outcome of the best-effort advance allocation.
    """

    order: OrderRead
    allocated_amount: Decimal = Decimal("0.00")
    warnings: list[dict[str, str]] = Field(default_factory=list)


class OrderProductRead(BaseModel):
    """Line as shown on the dispatch screen."""

    product_id: uuid.UUID
    product_name: str
    unit_type: str
    quantity: Decimal
    remaining_quantity: Decimal
    dispatched_quantity: Decimal
    rate_price: Decimal
    amount: Decimal


class OrderProductsResponse(BaseModel):
    order_id: uuid.UUID
    order_no: int
    client: Optional[ClientSummary] = None
    status: OrderStatus
    products: list[OrderProductRead]
