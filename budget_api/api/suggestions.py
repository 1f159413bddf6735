from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from budget_api.api.errors import raise_http
from budget_api.db.deps import get_db
from budget_api.models.models import Confidence, SuggestionStatus
from budget_api.schemas.suggestion import (
    LinkOut,
    ManualLinkRequest,
    ScanRequest,
    SuggestionDetailOut,
    SuggestionExplainOut,
    SuggestionOut,
)
from budget_api.schemas.transaction import TransactionOut
from budget_api.services.errors import TransferMatchError
from budget_api.services.explain import ExplanationService
from budget_api.services.linking import LinkResult, TransferLinkService
from budget_api.services.matching import TransferMatcherService
from budget_api.services.suggestions import SuggestionStore

router = APIRouter(tags=["transfer-suggestions"])


def _link_out(result: LinkResult) -> LinkOut:
    return LinkOut(
        suggestion=SuggestionOut.model_validate(result.suggestion),
        transactions=[
            TransactionOut.model_validate(result.transaction_a),
            TransactionOut.model_validate(result.transaction_b),
        ],
    )


@router.get("/transfer-suggestions", response_model=list[SuggestionDetailOut])
def list_suggestions(
    db: Session = Depends(get_db),
    status_filter: SuggestionStatus | None = Query(default=None, alias="status"),
    confidence: Confidence | None = Query(default=None),
):
    return SuggestionStore(db).list_suggestions(status=status_filter, confidence=confidence)


@router.post("/transfer-suggestions/scan", response_model=list[SuggestionOut], status_code=status.HTTP_200_OK)
def scan(payload: ScanRequest | None = None, db: Session = Depends(get_db)):
    req = payload or ScanRequest()
    return TransferMatcherService(db).scan(start=req.date_start, end=req.date_end)


@router.get("/transfer-suggestions/{suggestion_id}/explain", response_model=SuggestionExplainOut)
def explain(suggestion_id: int, db: Session = Depends(get_db)):
    try:
        return ExplanationService(db).explain(suggestion_id)
    except TransferMatchError as e:
        raise_http(e)


@router.post("/transfer-suggestions/{suggestion_id}/accept", response_model=LinkOut)
def accept_suggestion(suggestion_id: int, db: Session = Depends(get_db)):
    try:
        return _link_out(TransferLinkService(db).accept(suggestion_id))
    except TransferMatchError as e:
        raise_http(e)


@router.post("/transfer-suggestions/{suggestion_id}/reject", response_model=SuggestionOut)
def reject_suggestion(suggestion_id: int, db: Session = Depends(get_db)):
    try:
        return TransferLinkService(db).reject(suggestion_id)
    except TransferMatchError as e:
        raise_http(e)


@router.post("/transfers/link", response_model=LinkOut)
def manual_link(payload: ManualLinkRequest, db: Session = Depends(get_db)):
    try:
        return _link_out(TransferLinkService(db).manual_link(payload.transaction_a_id, payload.transaction_b_id))
    except TransferMatchError as e:
        raise_http(e)
