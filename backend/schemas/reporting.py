"""Pydantic schemas for realized/unrealized P/L reporting."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel


class ExchangePL(BaseModel):
    """Realized P/L for one exchange."""

    exchange: str
    total_pl: Decimal


class RealizedPLSummary(BaseModel):
    """Realized P/L grouped by exchange, with the grand total."""

    by_exchange: list[ExchangePL]
    total: Decimal


class PeriodPL(BaseModel):
    """Realized P/L for one calendar period ("2024-03" or "2024")."""

    period: str
    total_pl: Decimal
    sale_count: int


class PositionSummary(BaseModel):
    """Open position for a ticker across all of a holder's open lots."""

    ticker: str
    total_quantity: Decimal
    lot_count: int
    weighted_avg_cost: Decimal
    total_cost_basis: Decimal
    current_price: Decimal | None = None
    market_value: Decimal | None = None
    unrealized_pl: Decimal | None = None


class DailyTransaction(BaseModel):
    """A transaction on the reported day; SELLs carry their realized P/L."""

    id: str
    ticker: str
    exchange: str
    transaction_type: str
    quantity: Decimal
    price: Decimal
    transaction_date: date
    parent_buy_id: str | None = None
    account_holder_id: str
    parent_buy_price: Decimal | None = None
    realized_pl: Decimal | None = None


class EndOfDayLot(BaseModel):
    """A BUY lot bought on or before the reported day and still open."""

    id: str
    ticker: str
    exchange: str
    purchase_date: date
    cost_basis: Decimal
    original_quantity: Decimal
    quantity_remaining: Decimal
    limit_price_up: Decimal | None = None
    limit_up_expiration: date | None = None
    limit_price_down: Decimal | None = None
    limit_down_expiration: date | None = None
    account_holder_id: str


class PositionsAsOf(BaseModel):
    """One day's activity and the lots held at the end of it."""

    as_of: date
    daily_transactions: list[DailyTransaction]
    end_of_day_positions: list[EndOfDayLot]


class DailyPerformance(BaseModel):
    """Portfolio value on a day against the day before."""

    as_of: date
    previous_date: date
    current_value: Decimal
    previous_value: Decimal
    daily_change: Decimal
