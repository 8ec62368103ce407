"""API route handlers."""
from . import account_holders, reporting, splits, transactions

__all__ = ["account_holders", "reporting", "splits", "transactions"]
