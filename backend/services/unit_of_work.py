"""Atomic scope for multi-row lot mutations.

Usage::

    with atomic(db, event_bus) as uow:
        ...mutate through LotStore...
        uow.publish(SomeEvent(...))

On normal exit the scope commits, then hands queued events to the bus.
On any exception the scope rolls back, drops the queued events and
re-raises (store-level failures surface as ``StoreError``).
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from services.events import EventBus, LotEvent
from services.exceptions import LotError, StoreError

logger = logging.getLogger(__name__)


class UnitOfWork:
    """Handle passed to the body of an atomic scope."""

    def __init__(self, db: Session):
        self.db = db
        self.pending_events: list[LotEvent] = []

    def publish(self, event: LotEvent) -> None:
        """Queue an event for delivery after commit."""
        self.pending_events.append(event)


def _acquire_write_lock(db: Session) -> None:
    """Take the SQLite write lock before the first read of the scope.

    ``BEGIN IMMEDIATE`` serializes writers, so the remaining-quantity checks
    made inside the scope still hold when the decrement is written. Other
    databases rely on ``SELECT ... FOR UPDATE`` issued by LotStore.
    """
    connection = db.connection()
    if connection.dialect.name != "sqlite":
        return
    dbapi_connection = connection.connection.dbapi_connection
    if not dbapi_connection.in_transaction:
        db.execute(text("BEGIN IMMEDIATE"))


@contextmanager
def atomic(db: Session, event_bus: EventBus | None = None) -> Iterator[UnitOfWork]:
    """Run a block as one all-or-nothing store transaction."""
    uow = UnitOfWork(db)
    try:
        _acquire_write_lock(db)
        yield uow
        db.flush()
        db.commit()
    except LotError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Store failure, transaction rolled back: %s", e, exc_info=True)
        raise StoreError("Store error while applying transaction") from e
    except Exception:
        db.rollback()
        raise

    if event_bus is not None:
        for event in uow.pending_events:
            event_bus.publish(event)
