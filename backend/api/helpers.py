"""Shared API helpers for route handlers."""

import logging
from typing import TypeVar

from fastapi import HTTPException
from sqlalchemy.orm import Session

from database import Base
from services.exceptions import LotError

T = TypeVar("T", bound=Base)

logger = logging.getLogger(__name__)

# Store failures are logged by the unit of work; clients get a generic message.
INTERNAL_ERROR_DETAIL = "Internal server error"

# Query value meaning "no holder filter".
ALL_HOLDERS = "all"


def get_or_404(db: Session, model: type[T], entity_id: str, detail: str = "Not found") -> T:
    """Fetch a single entity by primary key or raise 404.

    Args:
        db: Database session.
        model: SQLAlchemy model class.
        entity_id: Primary key value.
        detail: Error message for the 404 response.

    Returns:
        The entity instance.

    Raises:
        HTTPException: 404 if the entity doesn't exist.
    """
    entity = db.query(model).filter(model.id == entity_id).first()
    if not entity:
        raise HTTPException(status_code=404, detail=detail)
    return entity


def lot_error_to_http(exc: LotError) -> HTTPException:
    """Translate an accounting error into an HTTPException.

    The status comes from the error class; 5xx responses hide the message.
    """
    status_code = exc.status_code
    if status_code >= 500:
        return HTTPException(status_code=status_code, detail=INTERNAL_ERROR_DETAIL)
    return HTTPException(status_code=status_code, detail=exc.message)


def holder_filter(holder: str | None) -> str | None:
    """Normalize a ``holder`` query value; empty or ``all`` means every holder."""
    if holder is None:
        return None
    holder = holder.strip()
    if not holder or holder.lower() == ALL_HOLDERS:
        return None
    return holder
