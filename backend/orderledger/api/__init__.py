"""
API Routes
Project: Order Ledger

Versioned router aggregation.
"""
