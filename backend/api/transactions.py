"""Transaction (lot) API endpoints.

Thin layer over LotAccountingService and RealizedPLService: request
parsing, error translation and response shaping only.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.helpers import holder_filter, lot_error_to_http
from database import get_db
from schemas.transaction import (
    MessageResponse,
    SaleResponse,
    SalesBatchRequest,
    TransactionCreate,
    TransactionResponse,
    TransactionUpdate,
)
from services.events import get_event_bus
from services.exceptions import LotError
from services.lot_accounting_service import LotAccountingService
from services.lot_store import LotStore
from services.realized_pl_service import RealizedPLService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/transactions", tags=["transactions"])


def get_accounting_service() -> LotAccountingService:
    """LotAccountingService wired to the process event bus (overridable in tests)."""
    return LotAccountingService(event_bus=get_event_bus())


@router.get("", response_model=list[TransactionResponse])
def list_transactions(
    holder: Optional[str] = Query(default=None, description="Account holder id"),
    db: Session = Depends(get_db),
):
    """List transactions, newest first."""
    return LotStore.list_transactions(db, holder_filter(holder))


@router.post("", response_model=list[TransactionResponse], status_code=201)
def create_transaction(
    data: TransactionCreate,
    db: Session = Depends(get_db),
    service: LotAccountingService = Depends(get_accounting_service),
):
    """Record a BUY, SELL or DIVIDEND.

    Always returns a list: one row for BUY/DIVIDEND, one SELL row per
    consumed lot for SELL.
    """
    try:
        if data.transaction_type == "BUY":
            return [service.create_buy(db, data.to_buy())]
        if data.transaction_type == "SELL":
            return service.create_sell(db, data.to_sell())
        return [service.create_dividend(db, data.to_dividend())]
    except LotError as e:
        raise lot_error_to_http(e)


@router.put("/{transaction_id}", response_model=TransactionResponse)
def update_transaction(
    transaction_id: str,
    patch: TransactionUpdate,
    db: Session = Depends(get_db),
    service: LotAccountingService = Depends(get_accounting_service),
):
    """Update the fields present in the request body."""
    try:
        return service.update_transaction(db, transaction_id, patch)
    except LotError as e:
        raise lot_error_to_http(e)


@router.delete("/{transaction_id}", response_model=MessageResponse)
def delete_transaction(
    transaction_id: str,
    db: Session = Depends(get_db),
    service: LotAccountingService = Depends(get_accounting_service),
):
    """Delete a transaction. Deleting a SELL restores its parent lot."""
    try:
        service.delete_transaction(db, transaction_id)
    except LotError as e:
        raise lot_error_to_http(e)
    return MessageResponse(message="Transaction deleted successfully.")


@router.get("/sales/{buy_id}", response_model=list[SaleResponse])
def list_sales_for_lot(
    buy_id: str,
    holder: Optional[str] = Query(default=None, description="Account holder id"),
    db: Session = Depends(get_db),
):
    """Sales drawn from one BUY lot, with realized P/L."""
    try:
        return RealizedPLService.list_sales_for_lot(db, buy_id, holder_filter(holder))
    except LotError as e:
        raise lot_error_to_http(e)


@router.post("/sales/batch", response_model=list[SaleResponse])
def list_sales_for_lots(request: SalesBatchRequest, db: Session = Depends(get_db)):
    """Sales drawn from several BUY lots of one holder."""
    try:
        return RealizedPLService.list_sales_for_lots(
            db, request.lot_ids, holder_filter(request.holder_id)
        )
    except LotError as e:
        raise lot_error_to_http(e)
