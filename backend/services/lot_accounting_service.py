"""Lot accounting engine.

Creates, consumes, restores and re-prices tax lots. Every public operation
runs inside one ``atomic`` scope: validation happens before the first
write, and any failure rolls the whole operation back.

Lot rules:
- BUY creates a lot with original_quantity == quantity_remaining == quantity.
- SELL consumes from one lot (parent_buy_id), from several chosen lots
  (lots=[...]) or from the oldest open lots (fifo=True).
- DIVIDEND is a standalone row.
- SPLIT rescales every open lot of a ticker and writes one audit row.
- DELETE of a SELL restores its parent; DELETE of a BUY with SELLs fails.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy.orm import Session

from models import Transaction, TransactionSource, TransactionType
from schemas.transaction import (
    BuyCreate,
    DividendCreate,
    SellCreate,
    SplitCreate,
    SplitResult,
    TransactionUpdate,
)
from services.events import (
    EventBus,
    LotsSold,
    SplitApplied,
    WatchlistArchiveRequested,
)
from services.exceptions import (
    ConflictError,
    InsufficientQuantityError,
    NotFoundError,
    ValidationError,
)
from services.lot_store import QUANTITY_EPSILON, LotStore
from services.unit_of_work import UnitOfWork, atomic

logger = logging.getLogger(__name__)

SPLIT_EXCHANGE = "SPLIT"

_LIMIT_FIELDS = (
    "limit_price_up",
    "limit_up_expiration",
    "limit_price_down",
    "limit_down_expiration",
    "limit_price_up_2",
    "limit_up_expiration_2",
)


@dataclass
class _Allocation:
    """One (lot, quantity) pair of a validated SELL plan."""

    lot: Transaction
    quantity: Decimal


# --- Input helpers ---


def _to_decimal(value: Any, field: str) -> Decimal:
    if value is None or value == "":
        raise ValidationError(f"Invalid input: {field} is required.")
    if isinstance(value, bool):
        raise ValidationError(f"Invalid input: {field} must be a number.")
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid input: {field} must be a number.")
    if not number.is_finite():
        raise ValidationError(f"Invalid input: {field} must be a number.")
    return number


def _positive(value: Any, field: str) -> Decimal:
    number = _to_decimal(value, field)
    if number <= 0:
        raise ValidationError(f"Invalid input: {field} must be greater than zero.")
    return number


def _required(value: Any, field: str) -> Any:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"Invalid input: {field} is required.")
    return value.strip() if isinstance(value, str) else value


def _ticker(value: Any) -> str:
    return _required(value, "ticker").upper()


def _format_qty(value: Decimal) -> str:
    """Render a quantity with at most 5 decimals for messages."""
    return f"{value.quantize(Decimal('0.00001')).normalize():f}"


def _subtract_remaining(lot: Transaction, quantity: Decimal) -> None:
    """Decrement a lot, re-checking the remaining quantity at write time."""
    remaining = Decimal(lot.quantity_remaining)
    if quantity > remaining + QUANTITY_EPSILON:
        raise ConflictError(
            f"Lot {lot.id} no longer has {_format_qty(quantity)} shares remaining "
            f"({_format_qty(remaining)} left)."
        )
    new_remaining = remaining - quantity
    if new_remaining < 0:
        new_remaining = Decimal("0")
    lot.quantity_remaining = new_remaining


class LotAccountingService:
    """BUY / SELL / DIVIDEND / SPLIT / UPDATE / DELETE over the lot store.

    Args:
        event_bus: Receives post-commit events (watchlist archiving and
            other fire-and-forget collaborators). Optional.
    """

    def __init__(self, event_bus: EventBus | None = None):
        self.event_bus = event_bus

    # --- BUY ---

    def create_buy(self, db: Session, data: BuyCreate) -> Transaction:
        """Create a new lot."""
        ticker = _ticker(data.ticker)
        exchange = _required(data.exchange, "exchange")
        quantity = _positive(data.quantity, "quantity")
        price = _positive(data.price, "price")
        transaction_date = _required(data.transaction_date, "transaction_date")
        holder_id = _required(data.account_holder_id, "account_holder_id")

        with atomic(db, self.event_bus) as uow:
            self._require_holder(db, holder_id)
            lot = Transaction(
                ticker=ticker,
                exchange=exchange,
                transaction_type=TransactionType.BUY.value,
                quantity=quantity,
                price=price,
                transaction_date=transaction_date,
                original_quantity=quantity,
                quantity_remaining=quantity,
                parent_buy_id=None,
                account_holder_id=holder_id,
                source=TransactionSource(data.source).value,
                advice_source_id=data.advice_source_id,
                linked_journal_id=data.linked_journal_id,
                **{name: getattr(data, name) for name in _LIMIT_FIELDS},
            )
            LotStore.add(db, lot)
            uow.publish(
                WatchlistArchiveRequested(
                    account_holder_id=holder_id,
                    ticker=ticker,
                    advice_source_id=data.advice_source_id,
                )
            )

        logger.info(
            "Created BUY lot %s: %s %s @ %s for holder %s",
            lot.id, quantity, ticker, price, holder_id,
        )
        return lot

    # --- SELL ---

    def create_sell(self, db: Session, data: SellCreate) -> list[Transaction]:
        """Record a SELL against one lot, chosen lots, or FIFO lots.

        Returns one SELL row per consumed lot. The whole request is
        validated before any lot is touched.
        """
        ticker = _ticker(data.ticker)
        exchange = _required(data.exchange, "exchange")
        price = _positive(data.price, "price")
        transaction_date = _required(data.transaction_date, "transaction_date")
        holder_id = _required(data.account_holder_id, "account_holder_id")

        with atomic(db, self.event_bus) as uow:
            self._require_holder(db, holder_id)

            if data.parent_buy_id and not data.lots:
                quantity = _positive(data.quantity, "quantity")
                requested = OrderedDict([(data.parent_buy_id, quantity)])
            elif data.lots:
                requested = self._selective_request(data)
            elif data.fifo:
                quantity = _positive(data.quantity, "quantity")
                requested = self._fifo_request(db, ticker, holder_id, quantity, transaction_date)
            else:
                raise ValidationError(
                    "Invalid SELL transaction payload. Must provide either a "
                    "parent_buy_id, a lots array, or fifo with a quantity."
                )

            plan = self._plan_sell(db, ticker, holder_id, transaction_date, requested)
            sales = self._apply_sell(db, uow, plan, ticker, exchange, price, transaction_date, holder_id, data)

        logger.info(
            "Created SELL of %s %s across %d lot(s) for holder %s",
            sum((s.quantity for s in sales), Decimal("0")), ticker, len(sales), holder_id,
        )
        return sales

    @staticmethod
    def _selective_request(data: SellCreate) -> "OrderedDict[str, Decimal]":
        """Aggregate lot entries by id, skipping zero-quantity rows."""
        requested: OrderedDict[str, Decimal] = OrderedDict()
        for entry in data.lots:
            quantity = _to_decimal(entry.quantity_to_sell, "quantity_to_sell")
            if quantity == 0:
                continue
            if quantity < 0:
                raise ValidationError(
                    f"Invalid input: quantity_to_sell for lot {entry.parent_buy_id} "
                    "must be greater than zero."
                )
            requested[entry.parent_buy_id] = requested.get(entry.parent_buy_id, Decimal("0")) + quantity

        total = sum(requested.values(), Decimal("0"))
        if total <= 0:
            raise ValidationError("Total quantity to sell must be greater than zero.")
        if data.quantity is not None:
            expected = _to_decimal(data.quantity, "quantity")
            if abs(total - expected) > QUANTITY_EPSILON:
                raise ValidationError(
                    "Total quantity specified does not match the sum of "
                    "quantities entered for individual lots."
                )
        return requested

    @staticmethod
    def _fifo_request(
        db: Session, ticker: str, holder_id: str, quantity: Decimal, sell_date: date
    ) -> "OrderedDict[str, Decimal]":
        """Draw ``quantity`` from lots open on ``sell_date``, oldest first."""
        requested: OrderedDict[str, Decimal] = OrderedDict()
        left = quantity
        open_lots = LotStore.get_open_lots(
            db, ticker, holder_id, for_update=True, bought_on_or_before=sell_date
        )
        for lot in open_lots:
            if left <= QUANTITY_EPSILON:
                break
            take = min(left, Decimal(lot.quantity_remaining))
            requested[lot.id] = take
            left -= take

        if left > QUANTITY_EPSILON:
            raise InsufficientQuantityError(
                f"Sell quantity ({_format_qty(quantity)}) exceeds the "
                f"{_format_qty(quantity - left)} shares held in open {ticker} "
                f"lots on {sell_date.isoformat()}."
            )
        return requested

    @staticmethod
    def _plan_sell(
        db: Session,
        ticker: str,
        holder_id: str,
        transaction_date: date,
        requested: "OrderedDict[str, Decimal]",
    ) -> list[_Allocation]:
        """Validate every requested lot before anything is written."""
        lots = LotStore.get_buy_lots(db, requested.keys(), holder_id, for_update=True)
        plan = []
        for lot_id, quantity in requested.items():
            lot = lots.get(lot_id)
            if lot is None or lot.ticker != ticker:
                raise NotFoundError(
                    f"Parent buy transaction (ID: {lot_id}) not found for this "
                    f"account holder and ticker {ticker}."
                )
            if transaction_date < lot.transaction_date:
                raise ValidationError(
                    f"Sell date cannot be before the buy date of lot ID {lot_id}."
                )
            remaining = Decimal(lot.quantity_remaining)
            if quantity > remaining + QUANTITY_EPSILON:
                raise InsufficientQuantityError(
                    f"Sell quantity ({_format_qty(quantity)}) exceeds remaining "
                    f"quantity ({_format_qty(remaining)}) in lot ID {lot_id}.",
                    lot_id=lot_id,
                )
            plan.append(_Allocation(lot=lot, quantity=quantity))
        return plan

    @staticmethod
    def _apply_sell(
        db: Session,
        uow: UnitOfWork,
        plan: list[_Allocation],
        ticker: str,
        exchange: str,
        price: Decimal,
        transaction_date: date,
        holder_id: str,
        data: SellCreate,
    ) -> list[Transaction]:
        sales = []
        advice_sources = []
        for allocation in plan:
            lot = allocation.lot
            _subtract_remaining(lot, allocation.quantity)
            sale = Transaction(
                ticker=ticker,
                exchange=exchange,
                transaction_type=TransactionType.SELL.value,
                quantity=allocation.quantity,
                price=price,
                transaction_date=transaction_date,
                parent_buy_id=lot.id,
                account_holder_id=holder_id,
                source=TransactionSource(data.source).value,
                advice_source_id=lot.advice_source_id,
                linked_journal_id=lot.linked_journal_id,
            )
            LotStore.add(db, sale)
            sales.append(sale)
            if lot.advice_source_id and lot.advice_source_id not in advice_sources:
                advice_sources.append(lot.advice_source_id)

        for advice_source_id in advice_sources:
            uow.publish(
                WatchlistArchiveRequested(
                    account_holder_id=holder_id,
                    ticker=ticker,
                    advice_source_id=advice_source_id,
                )
            )
        uow.publish(
            LotsSold(
                account_holder_id=holder_id,
                ticker=ticker,
                transaction_date=transaction_date,
                sale_ids=tuple(s.id for s in sales),
                total_quantity=sum((a.quantity for a in plan), Decimal("0")),
            )
        )
        return sales

    # --- DIVIDEND ---

    def create_dividend(self, db: Session, data: DividendCreate) -> Transaction:
        """Record a dividend. No lot is linked or consumed."""
        ticker = _ticker(data.ticker)
        exchange = _required(data.exchange, "exchange")
        quantity = _positive(data.quantity, "quantity")
        price = _positive(data.price, "price")
        transaction_date = _required(data.transaction_date, "transaction_date")
        holder_id = _required(data.account_holder_id, "account_holder_id")

        with atomic(db, self.event_bus):
            self._require_holder(db, holder_id)
            dividend = Transaction(
                ticker=ticker,
                exchange=exchange,
                transaction_type=TransactionType.DIVIDEND.value,
                quantity=quantity,
                price=price,
                transaction_date=transaction_date,
                account_holder_id=holder_id,
                advice_source_id=data.advice_source_id,
                linked_journal_id=data.linked_journal_id,
            )
            LotStore.add(db, dividend)

        logger.info("Recorded DIVIDEND %s for %s, holder %s", dividend.id, ticker, holder_id)
        return dividend

    # --- SPLIT ---

    def create_split(self, db: Session, data: SplitCreate) -> SplitResult:
        """Apply a ``split_from``-for-``split_to`` split to every open lot.

        Each open lot keeps its economic value: remaining and original
        quantities are multiplied by the ratio and price divided by it.
        Closed lots and existing SELL rows are left alone.
        """
        ticker = _ticker(data.ticker)
        split_date = _required(data.split_date, "split_date")
        holder_id = _required(data.account_holder_id, "account_holder_id")
        try:
            split_from = _positive(data.split_from, "split_from")
            split_to = _positive(data.split_to, "split_to")
        except ValidationError:
            raise ValidationError("Invalid split ratio.")
        ratio = split_to / split_from

        with atomic(db, self.event_bus) as uow:
            self._require_holder(db, holder_id)
            open_lots = LotStore.get_open_lots(db, ticker, holder_id, for_update=True)
            for lot in open_lots:
                lot.quantity_remaining = Decimal(lot.quantity_remaining) * ratio
                lot.price = Decimal(lot.price) / ratio
                lot.original_quantity = Decimal(lot.original_quantity) * ratio
            db.flush()

            audit = Transaction(
                ticker=ticker,
                exchange=data.exchange or SPLIT_EXCHANGE,
                transaction_type=TransactionType.SPLIT.value,
                quantity=split_to,
                price=split_from,
                transaction_date=split_date,
                account_holder_id=holder_id,
            )
            LotStore.add(db, audit)
            split_id = audit.id
            uow.publish(
                SplitApplied(
                    account_holder_id=holder_id,
                    ticker=ticker,
                    ratio=ratio,
                    lots_adjusted=len(open_lots),
                )
            )

        logger.info(
            "Applied %s-for-%s split to %d open %s lot(s) for holder %s",
            split_from, split_to, len(open_lots), ticker, holder_id,
        )
        return SplitResult(
            message="Stock split logged successfully.",
            split_id=split_id,
            ratio=ratio,
            lots_adjusted=len(open_lots),
        )

    # --- UPDATE ---

    def update_transaction(
        self, db: Session, transaction_id: str, patch: TransactionUpdate
    ) -> Transaction:
        """Apply the fields present in ``patch`` to a transaction.

        For a BUY lot, ``quantity`` is the new original_quantity. If the lot
        is untouched or the size grows, quantity_remaining moves by the same
        delta; a shrink on a partially sold lot only rewrites
        original_quantity. For a SELL, a quantity change moves the parent's
        quantity_remaining by the opposite delta.
        """
        changes = patch.model_dump(exclude_unset=True)
        for name in ("ticker", "exchange", "quantity", "price", "transaction_date", "account_holder_id"):
            if name in changes:
                _required(changes[name], name)
        if "ticker" in changes:
            changes["ticker"] = _ticker(changes["ticker"])
        if "exchange" in changes:
            changes["exchange"] = changes["exchange"].strip()
        if "quantity" in changes:
            changes["quantity"] = _positive(changes["quantity"], "quantity")
        if "price" in changes:
            changes["price"] = _positive(changes["price"], "price")

        with atomic(db, self.event_bus):
            record = LotStore.get(db, transaction_id, for_update=True)
            if record is None:
                raise NotFoundError("Transaction not found.")

            if "account_holder_id" in changes and changes["account_holder_id"] != record.account_holder_id:
                self._require_holder(db, changes["account_holder_id"])

            identity_changed = any(
                name in changes and changes[name] != getattr(record, name)
                for name in ("ticker", "account_holder_id")
            )
            if identity_changed:
                if record.is_sell:
                    raise ConflictError(
                        "Cannot change the ticker or account holder of a SELL; "
                        "delete and re-enter it instead."
                    )
                if record.is_buy and LotStore.count_sales(db, record.id) > 0:
                    raise ConflictError(
                        "Cannot change the ticker or account holder of a BUY "
                        "lot that has associated SELL transactions."
                    )

            if "transaction_date" in changes:
                self._check_dates(db, record, changes["transaction_date"])

            if "quantity" in changes:
                if record.is_buy:
                    self._resize_lot(record, changes["quantity"])
                elif record.is_sell and record.parent_buy_id:
                    self._resize_sale(db, record, changes["quantity"])

            for name, value in changes.items():
                setattr(record, name, value)
            db.flush()

        logger.info("Updated transaction %s (%s)", transaction_id, ", ".join(sorted(changes)))
        return record

    @staticmethod
    def _check_dates(db: Session, record: Transaction, new_date: date) -> None:
        """A SELL may not predate its parent; a BUY may not postdate its sales."""
        if record.is_sell and record.parent_buy_id:
            parent = LotStore.get(db, record.parent_buy_id)
            if parent is not None and new_date < parent.transaction_date:
                raise ValidationError(
                    f"Sell date cannot be before the buy date of lot ID {parent.id}."
                )
        elif record.is_buy:
            first_sale = LotStore.earliest_sale_date(db, record.id)
            if first_sale is not None and new_date > first_sale:
                raise ValidationError(
                    f"Buy date cannot be after the date of its earliest sale "
                    f"({first_sale.isoformat()})."
                )

    @staticmethod
    def _resize_lot(lot: Transaction, new_original: Decimal) -> None:
        old_original = Decimal(lot.original_quantity)
        old_remaining = Decimal(lot.quantity_remaining)
        untouched = abs(old_remaining - old_original) < QUANTITY_EPSILON
        delta = new_original - old_original

        if untouched or delta > 0:
            lot.quantity_remaining = old_remaining + delta
        else:
            # Partially sold lot shrinking: remaining is kept as-is.
            logger.warning(
                "Lot %s shrunk to %s while partially sold; quantity_remaining "
                "left at %s", lot.id, new_original, old_remaining,
            )
        lot.original_quantity = new_original

    @staticmethod
    def _resize_sale(db: Session, sale: Transaction, new_quantity: Decimal) -> None:
        parent = LotStore.get(db, sale.parent_buy_id, for_update=True)
        if parent is None:
            return
        delta = new_quantity - Decimal(sale.quantity)
        remaining = Decimal(parent.quantity_remaining)
        if delta > remaining + QUANTITY_EPSILON:
            raise InsufficientQuantityError(
                f"Sell quantity ({_format_qty(new_quantity)}) exceeds what lot ID "
                f"{parent.id} can cover ({_format_qty(remaining + Decimal(sale.quantity))}).",
                lot_id=parent.id,
            )
        new_remaining = remaining - delta
        parent.quantity_remaining = new_remaining if new_remaining > 0 else Decimal("0")

    # --- DELETE ---

    def delete_transaction(self, db: Session, transaction_id: str) -> None:
        """Delete a transaction, restoring or protecting lots as needed."""
        with atomic(db, self.event_bus):
            record = LotStore.get(db, transaction_id, for_update=True)
            if record is None:
                raise NotFoundError("Transaction not found.")
            record_type = record.transaction_type

            if record.is_sell and record.parent_buy_id:
                parent = LotStore.get(db, record.parent_buy_id, for_update=True)
                if parent is not None:
                    parent.quantity_remaining = Decimal(parent.quantity_remaining) + Decimal(record.quantity)
                    logger.info(
                        "Restored quantity %s to parent BUY %s", record.quantity, parent.id
                    )
            elif record.is_buy and LotStore.count_sales(db, record.id) > 0:
                raise ConflictError(
                    "Cannot delete a BUY transaction that has associated SELL transactions."
                )

            LotStore.delete(db, record)

        logger.info("Deleted %s transaction %s", record_type, transaction_id)

    # --- Helpers ---

    @staticmethod
    def _require_holder(db: Session, holder_id: str) -> None:
        if LotStore.get_account_holder(db, holder_id) is None:
            raise NotFoundError(f"Account holder not found: {holder_id}")
