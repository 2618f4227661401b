"""
Pydantic schemas for dashboards and analytics
Project: Order Ledger
"""

import uuid
from decimal import Decimal

from pydantic import BaseModel, Field

from orderledger.schemas.order import OrderRead


class RevenueSummary(BaseModel):
    total: Decimal
    paid: Decimal
    outstanding: Decimal


class AdminDashboard(BaseModel):
    total_orders: int
    orders_by_status: dict[str, int]
    orders_by_txn_status: dict[str, int]
    revenue: RevenueSummary
    total_clients: int
    total_products: int
    recent_orders: list[OrderRead] = Field(default_factory=list)


class SubAdminDashboard(BaseModel):
    total_sub_orders: int
    sub_orders_by_status: dict[str, int]
    orders_by_status: dict[str, int]


class MonthlyDispatch(BaseModel):
    month: str = Field(..., description="YYYY-MM")
    count: int
    value: Decimal


class TopClient(BaseModel):
    client_id: uuid.UUID
    client_name: str
    count: int
    value: Decimal


class DispatchInvoiceAnalytics(BaseModel):
    total_invoices: int
    total_value: Decimal
    monthly: list[MonthlyDispatch] = Field(default_factory=list)
    top_clients: list[TopClient] = Field(default_factory=list)
