"""Test fixtures and sample data."""
import pytest
from datetime import date
from decimal import Decimal

from models import AccountHolder, Transaction, TransactionType, WatchlistItem
from models.watchlist_item import WATCHLIST_OPEN
from sqlalchemy.orm import Session


def create_buy_lot(
    db: Session,
    holder: AccountHolder,
    ticker: str = "AAPL",
    quantity: str = "10",
    price: str = "150",
    transaction_date: date = date(2024, 1, 15),
    exchange: str = "NASDAQ",
    **kwargs,
) -> Transaction:
    """Insert an untouched BUY lot directly, bypassing the engine.

    This is a helper function (not a fixture) for tests that need several
    lots with different tickers, dates or prices.
    """
    lot = Transaction(
        ticker=ticker,
        exchange=exchange,
        transaction_type=TransactionType.BUY.value,
        quantity=Decimal(quantity),
        price=Decimal(price),
        transaction_date=transaction_date,
        original_quantity=Decimal(quantity),
        quantity_remaining=Decimal(quantity),
        account_holder_id=holder.id,
        **kwargs,
    )
    db.add(lot)
    db.commit()
    db.refresh(lot)
    return lot


def create_sale(
    db: Session,
    lot: Transaction,
    quantity: str,
    price: str,
    transaction_date: date = date(2024, 2, 1),
) -> Transaction:
    """Insert a SELL against ``lot`` and decrement it, bypassing the engine."""
    sale = Transaction(
        ticker=lot.ticker,
        exchange=lot.exchange,
        transaction_type=TransactionType.SELL.value,
        quantity=Decimal(quantity),
        price=Decimal(price),
        transaction_date=transaction_date,
        parent_buy_id=lot.id,
        account_holder_id=lot.account_holder_id,
    )
    lot.quantity_remaining = Decimal(lot.quantity_remaining) - Decimal(quantity)
    db.add(sale)
    db.commit()
    db.refresh(sale)
    return sale


@pytest.fixture
def account_holder(db: Session) -> AccountHolder:
    """Create a test account holder."""
    holder = AccountHolder(name="Alice")
    db.add(holder)
    db.commit()
    db.refresh(holder)
    return holder


@pytest.fixture
def other_holder(db: Session) -> AccountHolder:
    """Create a second account holder for cross-holder checks."""
    holder = AccountHolder(name="Bob")
    db.add(holder)
    db.commit()
    db.refresh(holder)
    return holder


def create_watchlist_item(
    db: Session,
    holder_id: str,
    ticker: str,
    advice_source_id: str | None = None,
) -> WatchlistItem:
    """Insert an OPEN watchlist item for a holder's ticker."""
    item = WatchlistItem(
        account_holder_id=holder_id,
        ticker=ticker.upper(),
        advice_source_id=advice_source_id,
        status=WATCHLIST_OPEN,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return item
