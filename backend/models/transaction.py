"""Transaction model - BUY lots, SELL consumptions, dividends and split audit rows."""

from enum import Enum

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid, utcnow


class TransactionType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    DIVIDEND = "DIVIDEND"
    SPLIT = "SPLIT"


class TransactionSource(str, Enum):
    MANUAL = "MANUAL"
    CSV_IMPORT = "CSV_IMPORT"


class Transaction(Base):
    """A single ledger row.

    A BUY row is a lot: ``original_quantity`` is its full size and
    ``quantity_remaining`` the unconsumed part. A SELL row consumes
    ``quantity`` shares from the BUY named by ``parent_buy_id``. DIVIDEND
    rows are standalone. SPLIT rows are audit records where ``quantity``
    holds split_to and ``price`` holds split_from.
    """

    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_transaction_quantity_positive"),
        CheckConstraint("price > 0", name="ck_transaction_price_positive"),
        CheckConstraint(
            "transaction_type IN ('BUY', 'SELL', 'DIVIDEND', 'SPLIT')",
            name="ck_transaction_type_valid",
        ),
        Index("ix_transactions_holder_ticker", "account_holder_id", "ticker"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    ticker = Column(String, nullable=False)
    exchange = Column(String, nullable=False)  # Brokerage / account location
    transaction_type = Column(String, nullable=False)
    quantity = Column(Numeric(18, 8), nullable=False)
    price = Column(Numeric(18, 8), nullable=False)
    transaction_date = Column(Date, nullable=False)

    # BUY-only lot state
    original_quantity = Column(Numeric(18, 8), nullable=True)
    quantity_remaining = Column(Numeric(18, 8), nullable=True)

    # SELL-only lot reference
    parent_buy_id = Column(String(36), ForeignKey("transactions.id"), nullable=True, index=True)

    account_holder_id = Column(String(36), ForeignKey("account_holders.id"), nullable=False, index=True)
    source = Column(String, nullable=False, default=TransactionSource.MANUAL.value)

    # Informational targets on BUY lots
    limit_price_up = Column(Numeric(18, 8), nullable=True)
    limit_up_expiration = Column(Date, nullable=True)
    limit_price_down = Column(Numeric(18, 8), nullable=True)
    limit_down_expiration = Column(Date, nullable=True)
    limit_price_up_2 = Column(Numeric(18, 8), nullable=True)
    limit_up_expiration_2 = Column(Date, nullable=True)

    # Informational linkage, not read by the accounting engine
    advice_source_id = Column(String(36), nullable=True)
    linked_journal_id = Column(String(36), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
    )

    # Relationships
    account_holder = relationship("AccountHolder", back_populates="transactions")
    parent_buy = relationship("Transaction", remote_side=[id], back_populates="sales")
    sales = relationship("Transaction", back_populates="parent_buy")

    @property
    def is_buy(self) -> bool:
        return self.transaction_type == TransactionType.BUY.value

    @property
    def is_sell(self) -> bool:
        return self.transaction_type == TransactionType.SELL.value
