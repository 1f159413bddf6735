from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from budget_api.db.deps import get_db
from budget_api.schemas.account import AccountCreate, AccountOut
from budget_api.services.accounts import AccountService

router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.post("", response_model=AccountOut, status_code=status.HTTP_201_CREATED)
def create_account(payload: AccountCreate, db: Session = Depends(get_db)):
    try:
        return AccountService(db).create_account(payload)
    except IntegrityError:
        raise HTTPException(status_code=409, detail="Account name already exists")


@router.get("", response_model=list[AccountOut])
def list_accounts(db: Session = Depends(get_db)):
    return AccountService(db).list_accounts()
