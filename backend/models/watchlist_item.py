"""WatchlistItem model - tickers a holder is watching, closed once acted on."""

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid, utcnow

WATCHLIST_OPEN = "OPEN"
WATCHLIST_CLOSED = "CLOSED"


class WatchlistItem(Base):
    """A watched ticker, optionally tied to the advice source that suggested it."""

    __tablename__ = "watchlist_items"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    account_holder_id = Column(String(36), ForeignKey("account_holders.id"), nullable=False, index=True)
    ticker = Column(String, nullable=False, index=True)
    advice_source_id = Column(String(36), nullable=True)
    status = Column(String, nullable=False, default=WATCHLIST_OPEN)  # "OPEN" / "CLOSED"
    created_at = Column(DateTime, default=utcnow)
    closed_at = Column(DateTime, nullable=True)

    # Relationships
    account_holder = relationship("AccountHolder", back_populates="watchlist_items")
