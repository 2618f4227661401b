"""
Order Ledger
Project: Order Ledger

Order, dispatch and payment ledger backend.
"""

__version__ = "1.0.0"
