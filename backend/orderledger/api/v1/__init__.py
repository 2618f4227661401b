"""
API v1 Routes
Project: Order Ledger

Version 1 of the API.
"""

from fastapi import APIRouter

from orderledger.api.v1 import (
    advanced_payments,
    auth,
    clients,
    dashboard,
    dispatch_invoices,
    orders,
    product_groups,
    products,
    sub_orders,
    transactions,
)

api_v1_router = APIRouter(prefix="/api/v1")

api_v1_router.include_router(auth.router)
api_v1_router.include_router(clients.router)
api_v1_router.include_router(product_groups.router)
api_v1_router.include_router(products.router)
api_v1_router.include_router(orders.router)
api_v1_router.include_router(sub_orders.router)
api_v1_router.include_router(transactions.router)
api_v1_router.include_router(advanced_payments.router)
api_v1_router.include_router(dispatch_invoices.router)
api_v1_router.include_router(dashboard.router)

__all__ = ["api_v1_router"]
