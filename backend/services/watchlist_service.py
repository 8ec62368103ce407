"""Watchlist archiving - closes watched tickers once a position is taken.

Runs as a post-commit subscriber of the accounting event bus with its own
session, so a failure here never touches the accounting transaction.
"""

import logging
from typing import Callable

from sqlalchemy.orm import Session

from models import WatchlistItem
from models.utils import utcnow
from models.watchlist_item import WATCHLIST_CLOSED, WATCHLIST_OPEN
from services.events import EventBus, WatchlistArchiveRequested

logger = logging.getLogger(__name__)


class WatchlistService:
    """Service for watchlist item lifecycle."""

    TOPIC = WatchlistArchiveRequested.topic

    @staticmethod
    def archive(
        db: Session,
        account_holder_id: str,
        ticker: str,
        advice_source_id: str | None = None,
    ) -> int:
        """Close OPEN watchlist items for a holder's ticker.

        With ``advice_source_id`` only items from that source are closed;
        without it every open item for the ticker is closed.

        Returns:
            Number of items closed.
        """
        query = db.query(WatchlistItem).filter(
            WatchlistItem.account_holder_id == account_holder_id,
            WatchlistItem.ticker == ticker.upper(),
            WatchlistItem.status == WATCHLIST_OPEN,
        )
        if advice_source_id is not None:
            query = query.filter(WatchlistItem.advice_source_id == advice_source_id)

        items = query.all()
        now = utcnow()
        for item in items:
            item.status = WATCHLIST_CLOSED
            item.closed_at = now
        db.commit()

        if items:
            logger.info(
                "Archived %d watchlist item(s) for %s (holder %s, source %s)",
                len(items), ticker, account_holder_id, advice_source_id,
            )
        return len(items)

    @staticmethod
    def subscribe(bus: EventBus, session_factory: Callable[[], Session]) -> Callable:
        """Register the archiver on an event bus.

        Each event is handled in a fresh session from ``session_factory``.
        Errors are logged and swallowed.

        Returns:
            The registered callback (for unsubscribe).
        """

        def _on_archive_requested(event: WatchlistArchiveRequested) -> None:
            db = session_factory()
            try:
                WatchlistService.archive(
                    db, event.account_holder_id, event.ticker, event.advice_source_id
                )
            except Exception:
                db.rollback()
                logger.warning(
                    "Watchlist archive failed for %s (holder %s)",
                    event.ticker, event.account_holder_id, exc_info=True,
                )
            finally:
                db.close()

        bus.subscribe(WatchlistService.TOPIC, _on_archive_requested)
        return _on_archive_requested
