from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from budget_api.api.errors import raise_http
from budget_api.db.deps import get_db
from budget_api.models.models import TransactionKind
from budget_api.schemas.transaction import ImportResult, TransactionFilters, TransactionIn, TransactionOut
from budget_api.services.errors import TransferMatchError
from budget_api.services.matching import TransferMatcherService
from budget_api.services.transactions import TransactionService

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.post("", response_model=TransactionOut, status_code=status.HTTP_201_CREATED)
def create_transaction(payload: TransactionIn, db: Session = Depends(get_db)):
    try:
        txn = TransactionService(db).create_transaction(payload)
    except TransferMatchError as e:
        raise_http(e)
    TransferMatcherService(db).suggest_for_transaction(txn)
    return txn


@router.post("/import", response_model=ImportResult, status_code=status.HTTP_200_OK)
def import_transactions(payload: list[TransactionIn], db: Session = Depends(get_db)):
    try:
        created, skipped = TransactionService(db).import_transactions(payload)
    except TransferMatchError as e:
        raise_http(e)
    suggestions = TransferMatcherService(db).suggest_for_transactions(created)
    return ImportResult(
        inserted=len(created),
        skipped=skipped,
        created_ids=[t.id for t in created],
        suggestions_created=len(suggestions),
    )


@router.get("", response_model=list[TransactionOut])
def list_transactions(
    db: Session = Depends(get_db),
    account_id: int | None = Query(default=None),
    kind: TransactionKind | None = Query(default=None),
):
    filters = TransactionFilters(account_id=account_id, kind=kind)
    return TransactionService(db).list_transactions(filters)


@router.delete("/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_transaction(transaction_id: int, db: Session = Depends(get_db)):
    try:
        ok = TransactionService(db).delete_transaction(transaction_id)
    except TransferMatchError as e:
        raise_http(e)
    if not ok:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return None
