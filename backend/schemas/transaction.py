"""Pydantic schemas for lot transactions (BUY / SELL / DIVIDEND / SPLIT).

Request schemas deliberately accept missing or non-positive numbers so the
accounting engine can reject them with its own ValidationError; pydantic only
enforces that a supplied value parses as the declared type.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator

from models import TransactionSource


class LimitFields(BaseModel):
    """Informational price targets carried on BUY lots."""

    limit_price_up: Decimal | None = None
    limit_up_expiration: date | None = None
    limit_price_down: Decimal | None = None
    limit_down_expiration: date | None = None
    limit_price_up_2: Decimal | None = None
    limit_up_expiration_2: date | None = None


class BuyCreate(LimitFields):
    """Schema for creating a BUY lot."""

    ticker: str | None = None
    exchange: str | None = None
    quantity: Decimal | None = None
    price: Decimal | None = None
    transaction_date: date | None = None
    account_holder_id: str | None = None
    source: TransactionSource = TransactionSource.MANUAL
    advice_source_id: str | None = None
    linked_journal_id: str | None = None


class SellLotEntry(BaseModel):
    """One lot consumed by a selective SELL."""

    parent_buy_id: str
    quantity_to_sell: Decimal | None = None


class SellCreate(BaseModel):
    """Schema for creating a SELL.

    Exactly one mode applies:
    - ``parent_buy_id`` + ``quantity``: single-lot sell
    - ``lots``: selective multi-lot sell (``quantity`` is an optional total check)
    - ``fifo=True`` + ``quantity``: allocate across open lots, oldest first
    """

    ticker: str | None = None
    exchange: str | None = None
    quantity: Decimal | None = None
    price: Decimal | None = None
    transaction_date: date | None = None
    account_holder_id: str | None = None
    parent_buy_id: str | None = None
    lots: list[SellLotEntry] | None = None
    fifo: bool = False
    source: TransactionSource = TransactionSource.MANUAL


class DividendCreate(BaseModel):
    """Schema for recording a dividend."""

    ticker: str | None = None
    exchange: str | None = None
    quantity: Decimal | None = None
    price: Decimal | None = None
    transaction_date: date | None = None
    account_holder_id: str | None = None
    advice_source_id: str | None = None
    linked_journal_id: str | None = None


class TransactionCreate(LimitFields):
    """Union request body for POST /api/transactions.

    Routed to BUY, SELL or DIVIDEND handling by ``transaction_type``.
    """

    transaction_type: Literal["BUY", "SELL", "DIVIDEND"]
    ticker: str | None = None
    exchange: str | None = None
    quantity: Decimal | None = None
    price: Decimal | None = None
    transaction_date: date | None = None
    account_holder_id: str | None = None
    parent_buy_id: str | None = None
    lots: list[SellLotEntry] | None = None
    fifo: bool = False
    source: TransactionSource = TransactionSource.MANUAL
    advice_source_id: str | None = None
    linked_journal_id: str | None = None

    def to_buy(self) -> BuyCreate:
        return BuyCreate(**self.model_dump(include=set(BuyCreate.model_fields)))

    def to_sell(self) -> SellCreate:
        return SellCreate(**self.model_dump(include=set(SellCreate.model_fields)))

    def to_dividend(self) -> DividendCreate:
        return DividendCreate(**self.model_dump(include=set(DividendCreate.model_fields)))


class SplitCreate(BaseModel):
    """Schema for a stock split event (``split_from``-for-``split_to``)."""

    ticker: str | None = None
    split_from: Decimal | None = None
    split_to: Decimal | None = None
    split_date: date | None = None
    account_holder_id: str | None = None
    exchange: str | None = None


class SplitResult(BaseModel):
    """Result of a logged split."""

    message: str
    split_id: str
    ratio: Decimal
    lots_adjusted: int


class TransactionUpdate(LimitFields):
    """Schema for patching a transaction.

    Only fields present in the request are applied. ``quantity`` on a BUY
    lot is its new original size. Identity fields (id, transaction_type,
    parent_buy_id, created_at) are not patchable.
    """

    ticker: str | None = None
    exchange: str | None = None
    quantity: Decimal | None = None
    price: Decimal | None = None
    transaction_date: date | None = None
    account_holder_id: str | None = None
    linked_journal_id: str | None = None


class TransactionResponse(BaseModel):
    """Schema for Transaction API response."""

    id: str
    ticker: str
    exchange: str
    transaction_type: str
    quantity: Decimal
    price: Decimal
    transaction_date: date
    original_quantity: Decimal | None = None
    quantity_remaining: Decimal | None = None
    parent_buy_id: str | None = None
    account_holder_id: str
    source: str
    limit_price_up: Decimal | None = None
    limit_up_expiration: date | None = None
    limit_price_down: Decimal | None = None
    limit_down_expiration: date | None = None
    limit_price_up_2: Decimal | None = None
    limit_up_expiration_2: date | None = None
    advice_source_id: str | None = None
    linked_journal_id: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SaleResponse(BaseModel):
    """A SELL joined to its parent lot's cost basis."""

    id: str
    parent_buy_id: str | None
    transaction_date: date
    quantity: Decimal
    price: Decimal
    exchange: str
    cost_basis: Decimal | None = None
    realized_pl: Decimal


class SalesBatchRequest(BaseModel):
    """Request body for listing sales across several parent lots."""

    lot_ids: list[str]
    holder_id: str | None = None

    @field_validator("lot_ids")
    @classmethod
    def dedupe_lot_ids(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(v))


class MessageResponse(BaseModel):
    message: str
