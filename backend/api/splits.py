"""Stock split API endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.helpers import lot_error_to_http
from api.transactions import get_accounting_service
from database import get_db
from schemas.transaction import SplitCreate, SplitResult
from services.exceptions import LotError
from services.lot_accounting_service import LotAccountingService

router = APIRouter(prefix="/api/splits", tags=["splits"])


@router.post("", response_model=SplitResult, status_code=201)
def create_split(
    data: SplitCreate,
    db: Session = Depends(get_db),
    service: LotAccountingService = Depends(get_accounting_service),
):
    """Apply a split to every open lot of the ticker and log it."""
    try:
        return service.create_split(db, data)
    except LotError as e:
        raise lot_error_to_http(e)
