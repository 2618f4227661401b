"""
Pydantic schemas
Project: Order Ledger
"""
