"""
SQLAlchemy database models
Project: Order Ledger

Central import of every model, so that Base.metadata is complete.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


from orderledger.models.user import User, UserRole
from orderledger.models.sequence import SequenceCounter
from orderledger.models.client import Client
from orderledger.models.product import Product, ProductGroup
from orderledger.models.order import Order, OrderLine, SubOrder
from orderledger.models.transaction import Transaction
from orderledger.models.advanced_payment import AdvancedPayment, AdvancedPaymentUsage

__all__ = [
    "Base",
    "User",
    "UserRole",
    "SequenceCounter",
    "Client",
    "Product",
    "ProductGroup",
    "Order",
    "OrderLine",
    "SubOrder",
    "Transaction",
    "AdvancedPayment",
    "AdvancedPaymentUsage",
]
