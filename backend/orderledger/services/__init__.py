"""
Service layer
Project: Order Ledger
"""
