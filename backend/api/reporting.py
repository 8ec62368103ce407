"""Realized and unrealized P/L reporting endpoints."""

from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.helpers import holder_filter, lot_error_to_http
from database import get_db
from schemas.reporting import (
    DailyPerformance,
    PeriodPL,
    PositionsAsOf,
    PositionSummary,
    RealizedPLSummary,
)
from services.exceptions import LotError
from services.price_service import PriceService
from services.realized_pl_service import RealizedPLService

router = APIRouter(prefix="/api/reporting", tags=["reporting"])

# Shared so the TTL cache survives across requests
_price_service: Optional[PriceService] = None


def get_price_service() -> PriceService:
    """Get the process-wide PriceService (overridable in tests)."""
    global _price_service
    if _price_service is None:
        _price_service = PriceService()
    return _price_service


@router.get("/realized-pl", response_model=RealizedPLSummary)
def get_realized_pl(
    holder: Optional[str] = Query(default=None, description="Account holder id"),
    start_date: Optional[date] = Query(default=None, description="First sale date (inclusive)"),
    end_date: Optional[date] = Query(default=None, description="Last sale date (inclusive)"),
    db: Session = Depends(get_db),
):
    """Realized P/L by exchange and in total."""
    try:
        return RealizedPLService.realized_pl_summary(
            db, holder_filter(holder), start_date, end_date
        )
    except LotError as e:
        raise lot_error_to_http(e)


@router.get("/realized-pl/by-period", response_model=list[PeriodPL])
def get_realized_pl_by_period(
    holder: Optional[str] = Query(default=None, description="Account holder id"),
    period: Literal["month", "year"] = Query(default="month"),
    db: Session = Depends(get_db),
):
    """Realized P/L per calendar month or year."""
    try:
        return RealizedPLService.realized_pl_by_period(db, holder_filter(holder), period)
    except LotError as e:
        raise lot_error_to_http(e)


@router.get("/positions", response_model=list[PositionSummary])
def get_positions(
    holder: Optional[str] = Query(default=None, description="Account holder id"),
    db: Session = Depends(get_db),
    price_service: PriceService = Depends(get_price_service),
):
    """Open positions per ticker with unrealized P/L where a price is available."""
    return RealizedPLService.get_positions(db, holder_filter(holder), price_service)


@router.get("/positions/{as_of}", response_model=PositionsAsOf)
def get_positions_as_of(
    as_of: date,
    holder: Optional[str] = Query(default=None, description="Account holder id or 'all'"),
    db: Session = Depends(get_db),
):
    """Transactions on a day and the BUY lots held at the end of it."""
    return RealizedPLService.positions_as_of(db, as_of, holder_filter(holder))


@router.get("/daily-performance/{as_of}", response_model=DailyPerformance)
def get_daily_performance(
    as_of: date,
    holder: Optional[str] = Query(default=None, description="Account holder id or 'all'"),
    db: Session = Depends(get_db),
    price_service: PriceService = Depends(get_price_service),
):
    """Portfolio value on a day against the previous day."""
    return RealizedPLService.daily_performance(db, as_of, holder_filter(holder), price_service)
