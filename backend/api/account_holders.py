"""Account holder API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from api.helpers import get_or_404
from database import get_db
from models import AccountHolder
from schemas.account_holder import AccountHolderCreate, AccountHolderResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/account-holders", tags=["account-holders"])


@router.get("", response_model=list[AccountHolderResponse])
def list_account_holders(db: Session = Depends(get_db)):
    """List account holders by name."""
    return db.query(AccountHolder).order_by(AccountHolder.name).all()


@router.get("/{holder_id}", response_model=AccountHolderResponse)
def get_account_holder(holder_id: str, db: Session = Depends(get_db)):
    return get_or_404(db, AccountHolder, holder_id, "Account holder not found")


@router.post("", response_model=AccountHolderResponse, status_code=201)
def create_account_holder(data: AccountHolderCreate, db: Session = Depends(get_db)):
    """Create an account holder. Names are unique."""
    existing = db.query(AccountHolder).filter(AccountHolder.name == data.name).first()
    if existing:
        raise HTTPException(status_code=409, detail="Account holder name already exists")

    holder = AccountHolder(name=data.name)
    db.add(holder)
    db.commit()
    db.refresh(holder)
    logger.info("Created account holder %s (%s)", holder.id, holder.name)
    return holder
