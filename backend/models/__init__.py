"""SQLAlchemy ORM models."""

from .account_holder import AccountHolder
from .transaction import Transaction, TransactionSource, TransactionType
from .watchlist_item import WatchlistItem
from .utils import generate_uuid

__all__ = ["AccountHolder", "Transaction", "TransactionSource", "TransactionType", "WatchlistItem", "generate_uuid"]
