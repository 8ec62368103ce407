"""Typed repository over the transactions table.

Every query the accounting engine and the P/L aggregator run goes through
here, with the session passed explicitly. Batch lookups take a collection
of ids and bind them through ``in_()``; nothing is string-interpolated.
"""

import logging
from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from models import AccountHolder, Transaction, TransactionType

logger = logging.getLogger(__name__)

# Floating tolerance for lot quantity comparisons.
QUANTITY_EPSILON = Decimal("0.00001")


def _fifo_order(query: Query) -> Query:
    return query.order_by(
        Transaction.transaction_date.asc(),
        Transaction.created_at.asc(),
        Transaction.id.asc(),
    )


class LotStore:
    """Query and persistence helpers for Transaction rows."""

    # --- Single-row lookups ---

    @staticmethod
    def get(db: Session, transaction_id: str, for_update: bool = False) -> Transaction | None:
        query = db.query(Transaction).filter(Transaction.id == transaction_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_account_holder(db: Session, account_holder_id: str) -> AccountHolder | None:
        return db.query(AccountHolder).filter(AccountHolder.id == account_holder_id).first()

    @staticmethod
    def get_buy_lot(
        db: Session,
        lot_id: str,
        account_holder_id: str,
        for_update: bool = False,
    ) -> Transaction | None:
        """Fetch a BUY lot owned by the holder, or None."""
        query = db.query(Transaction).filter(
            Transaction.id == lot_id,
            Transaction.account_holder_id == account_holder_id,
            Transaction.transaction_type == TransactionType.BUY.value,
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    # --- Batch lookups ---

    @staticmethod
    def get_buy_lots(
        db: Session,
        lot_ids: Iterable[str],
        account_holder_id: str,
        for_update: bool = False,
    ) -> dict[str, Transaction]:
        """Fetch BUY lots by id for one holder, keyed by id.

        Ids that don't resolve (missing, other holder, not a BUY) are
        simply absent from the result.
        """
        ids = set(lot_ids)
        if not ids:
            return {}
        query = db.query(Transaction).filter(
            Transaction.id.in_(ids),
            Transaction.account_holder_id == account_holder_id,
            Transaction.transaction_type == TransactionType.BUY.value,
        )
        if for_update:
            query = query.with_for_update()
        return {lot.id: lot for lot in query.all()}

    @staticmethod
    def get_open_lots(
        db: Session,
        ticker: str,
        account_holder_id: str,
        for_update: bool = False,
        bought_on_or_before: date | None = None,
    ) -> list[Transaction]:
        """Open BUY lots for (ticker, holder) in FIFO order.

        With ``bought_on_or_before`` only lots bought on or before that date
        are returned.
        """
        query = db.query(Transaction).filter(
            Transaction.ticker == ticker,
            Transaction.account_holder_id == account_holder_id,
            Transaction.transaction_type == TransactionType.BUY.value,
            Transaction.quantity_remaining > QUANTITY_EPSILON,
        )
        if bought_on_or_before is not None:
            query = query.filter(Transaction.transaction_date <= bought_on_or_before)
        if for_update:
            query = query.with_for_update()
        return _fifo_order(query).all()

    @staticmethod
    def get_all_open_lots(
        db: Session,
        account_holder_id: str | None = None,
        bought_on_or_before: date | None = None,
    ) -> list[Transaction]:
        """Open BUY lots across tickers, optionally for one holder."""
        query = db.query(Transaction).filter(
            Transaction.transaction_type == TransactionType.BUY.value,
            Transaction.quantity_remaining > QUANTITY_EPSILON,
        )
        if account_holder_id is not None:
            query = query.filter(Transaction.account_holder_id == account_holder_id)
        if bought_on_or_before is not None:
            query = query.filter(Transaction.transaction_date <= bought_on_or_before)
        return _fifo_order(query.order_by(Transaction.ticker.asc())).all()

    @staticmethod
    def get_transactions_on(
        db: Session, day: date, account_holder_id: str | None = None
    ) -> list[Transaction]:
        """Every transaction dated ``day``, in insertion order."""
        query = db.query(Transaction).filter(Transaction.transaction_date == day)
        if account_holder_id is not None:
            query = query.filter(Transaction.account_holder_id == account_holder_id)
        return query.order_by(Transaction.created_at.asc(), Transaction.id.asc()).all()

    @staticmethod
    def get_sales_for_lots(
        db: Session,
        lot_ids: Iterable[str],
        account_holder_id: str,
    ) -> list[Transaction]:
        """SELL rows referencing any of the given lots, oldest first."""
        ids = set(lot_ids)
        if not ids:
            return []
        query = db.query(Transaction).filter(
            Transaction.parent_buy_id.in_(ids),
            Transaction.account_holder_id == account_holder_id,
            Transaction.transaction_type == TransactionType.SELL.value,
        )
        return _fifo_order(query).all()

    @staticmethod
    def get_sales(db: Session, account_holder_id: str | None = None) -> list[Transaction]:
        """All SELL rows, optionally for one holder, oldest first."""
        query = db.query(Transaction).filter(
            Transaction.transaction_type == TransactionType.SELL.value,
        )
        if account_holder_id is not None:
            query = query.filter(Transaction.account_holder_id == account_holder_id)
        return _fifo_order(query).all()

    @staticmethod
    def count_sales(db: Session, buy_id: str) -> int:
        """Number of SELL rows referencing a BUY lot."""
        return (
            db.query(Transaction)
            .filter(Transaction.parent_buy_id == buy_id)
            .count()
        )

    @staticmethod
    def sold_quantity(db: Session, buy_id: str) -> Decimal:
        """Sum of SELL quantities referencing a BUY lot."""
        sales = db.query(Transaction.quantity).filter(Transaction.parent_buy_id == buy_id).all()
        return sum((row.quantity for row in sales), Decimal("0"))

    @staticmethod
    def earliest_sale_date(db: Session, buy_id: str) -> date | None:
        """Date of the first SELL drawn from a BUY lot, or None."""
        return (
            db.query(func.min(Transaction.transaction_date))
            .filter(
                Transaction.parent_buy_id == buy_id,
                Transaction.transaction_type == TransactionType.SELL.value,
            )
            .scalar()
        )

    @staticmethod
    def list_transactions(db: Session, account_holder_id: str | None = None) -> list[Transaction]:
        """All transactions, newest first."""
        query = db.query(Transaction)
        if account_holder_id is not None:
            query = query.filter(Transaction.account_holder_id == account_holder_id)
        return query.order_by(
            Transaction.transaction_date.desc(),
            Transaction.created_at.desc(),
        ).all()

    # --- Writes ---

    @staticmethod
    def add(db: Session, record: Transaction) -> Transaction:
        db.add(record)
        db.flush()
        return record

    @staticmethod
    def delete(db: Session, record: Transaction) -> None:
        db.delete(record)
        db.flush()
