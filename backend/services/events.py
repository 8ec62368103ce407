"""Outbound events published by the accounting engine after commit.

Collaborators (watchlist archiving, price capture, notifications) subscribe
to the bus instead of being called inline, so a failing subscriber can
never roll back or fail an accounting operation.
"""

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Callable

logger = logging.getLogger(__name__)

WILDCARD = "*"


@dataclass(frozen=True)
class LotEvent:
    """Base class for engine events. ``topic`` is the subscription key."""

    topic: str = field(init=False, default="lot_event")


@dataclass(frozen=True)
class WatchlistArchiveRequested(LotEvent):
    """A BUY or SELL was committed for a ticker the holder may be watching."""

    account_holder_id: str
    ticker: str
    advice_source_id: str | None = None
    topic: str = field(init=False, default="watchlist.archive")


@dataclass(frozen=True)
class LotsSold(LotEvent):
    """One SELL request committed; one entry per consumed lot."""

    account_holder_id: str
    ticker: str
    transaction_date: date
    sale_ids: tuple[str, ...]
    total_quantity: Decimal
    topic: str = field(init=False, default="lots.sold")


@dataclass(frozen=True)
class SplitApplied(LotEvent):
    """A split rewrote the open lots of a ticker."""

    account_holder_id: str
    ticker: str
    ratio: Decimal
    lots_adjusted: int
    topic: str = field(init=False, default="split.applied")


Subscriber = Callable[[Any], None]


class EventBus:
    """In-process publish/subscribe for LotEvents.

    Subscribers run synchronously in publish order. A subscriber that
    raises is logged and skipped; publish never raises.
    """

    def __init__(self):
        self._subscribers: dict[str, list[Subscriber]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, topic: str, callback: Subscriber) -> None:
        """Subscribe to a topic ('*' for all events)."""
        with self._lock:
            self._subscribers[topic].append(callback)
        logger.debug("Subscriber added for topic '%s'", topic)

    def unsubscribe(self, topic: str, callback: Subscriber) -> None:
        with self._lock:
            if callback in self._subscribers[topic]:
                self._subscribers[topic].remove(callback)

    def publish(self, event: LotEvent) -> None:
        """Deliver an event to topic and wildcard subscribers."""
        with self._lock:
            callbacks = list(self._subscribers.get(event.topic, []))
            callbacks += self._subscribers.get(WILDCARD, [])

        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                logger.warning(
                    "Subscriber failed for %s event", event.topic, exc_info=True
                )


_default_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Process-wide bus used by the API layer."""
    global _default_bus
    if _default_bus is None:
        _default_bus = EventBus()
    return _default_bus
