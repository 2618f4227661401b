"""
Pydantic schemas for sub-orders and dispatch invoices
Project: Order Ledger
"""

import datetime
import uuid
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from orderledger.models.order import SubOrderStatus, SubOrderType
from orderledger.models.product import UnitType
from orderledger.schemas.common import PaginatedList


class DispatchLine(BaseModel):
    product_id: uuid.UUID
    quantity: Decimal = Field(..., gt=0, decimal_places=3)
    unit_type: Optional[UnitType] = None


class SubOrderCreate(DispatchLine):
    """Single dispatch line against an order."""

    order_id: uuid.UUID
    dispatch_date: datetime.date = Field(default_factory=datetime.date.today)
    remarks: Optional[str] = Field(None, max_length=1000)


class SubOrderBatchCreate(BaseModel):
    """Several dispatch lines applied all-or-nothing."""

    order_id: uuid.UUID
    lines: list[DispatchLine] = Field(..., min_length=1)
    dispatch_date: datetime.date = Field(default_factory=datetime.date.today)
    remarks: Optional[str] = Field(None, max_length=1000)


class SubOrderStatusUpdate(BaseModel):
    status: SubOrderStatus


class BulkStatusItem(BaseModel):
    sub_order_id: uuid.UUID
    status: str = Field(..., description="Target status; invalid values are reported per item")


class BulkStatusUpdate(BaseModel):
    updates: list[BulkStatusItem] = Field(..., min_length=1)


class SubOrderRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_id: uuid.UUID
    order_no: int
    client_id: uuid.UUID
    product_id: Optional[uuid.UUID]
    quantity: Decimal
    unit_type: Optional[str]
    status: SubOrderStatus
    sub_order_type: SubOrderType
    dispatch_date: datetime.date
    dispatched_value: Decimal
    invoice_no: Optional[str]
    dispatch_info: Optional[dict[str, Any]]
    remarks: Optional[str]
    created_at: datetime.datetime
    updated_at: datetime.datetime


class SubOrderList(PaginatedList):
    items: list[SubOrderRead]


class SubOrderBatchResponse(BaseModel):
    order_id: uuid.UUID
    order_status: str
    remaining_quantity: Decimal
    dispatched_value: Decimal
    sub_orders: list[SubOrderRead]


class BulkStatusError(BaseModel):
    sub_order_id: uuid.UUID
    error: str


class BulkStatusResult(BaseModel):
    success_count: int
    failed_count: int
    errors: list[BulkStatusError] = Field(default_factory=list)
    updated_sub_orders: list[SubOrderRead] = Field(default_factory=list)
    completed_orders: list[int] = Field(default_factory=list, description="order_no of orders now COMPLETED")


# -------------------------------------------------------------------
# Dispatch invoice
# -------------------------------------------------------------------

class Party(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    address: Optional[str] = Field(None, max_length=500)
    gstin: Optional[str] = Field(None, max_length=15)
    mobile: Optional[str] = Field(None, max_length=20)


class DispatchInvoiceCreate(BaseModel):
    """
    Shipment metadata for a dispatch invoice. `lines` are applied as an
    atomic dispatch batch first; without lines the invoice only snapshots
    the order.
    """

    order_id: uuid.UUID
    lines: list[DispatchLine] = Field(default_factory=list)
    dispatch_date: datetime.date = Field(default_factory=datetime.date.today)
    vehicle_no: Optional[str] = Field(None, max_length=20)
    transporter: Optional[str] = Field(None, max_length=150)
    driver_name: Optional[str] = Field(None, max_length=100)
    consignee: Optional[Party] = None
    buyer: Optional[Party] = None
    gst_enabled: bool = False
    remarks: Optional[str] = Field(None, max_length=1000)


class DispatchInvoiceCreationResponse(BaseModel):
    dispatch_invoice: SubOrderRead
    pdf_error: Optional[str] = None
