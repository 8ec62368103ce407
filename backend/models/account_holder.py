"""AccountHolder model - the owner that partitions every lot query."""

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid, utcnow


class AccountHolder(Base):
    """A person or entity whose positions are tracked separately.

    All lot matching is scoped to (ticker, account_holder_id).
    """

    __tablename__ = "account_holders"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String, nullable=False, unique=True)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    transactions = relationship("Transaction", back_populates="account_holder")
    watchlist_items = relationship("WatchlistItem", back_populates="account_holder")
