from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel

from budget_api.models.models import Confidence, SuggestionStatus
from budget_api.schemas.common import OrmBase
from budget_api.schemas.transaction import TransactionOut


class SuggestionOut(OrmBase):
    id: int
    transaction_a_id: int
    transaction_b_id: int
    score: int
    confidence: Confidence
    is_credit_payment: bool
    status: SuggestionStatus
    created_at: datetime
    reviewed_at: datetime | None


class SuggestionDetailOut(SuggestionOut):
    transaction_a: TransactionOut | None = None
    transaction_b: TransactionOut | None = None


class LinkOut(BaseModel):
    suggestion: SuggestionOut
    transactions: list[TransactionOut]


class ManualLinkRequest(BaseModel):
    transaction_a_id: int
    transaction_b_id: int


class ScanRequest(BaseModel):
    date_start: date | None = None
    date_end: date | None = None


class SuggestionExplainOut(BaseModel):
    suggestion_id: int
    stored_score: int
    score: int
    confidence: Confidence
    days_apart: int
    date_score: int
    round_score: int
    description_score: int
    is_credit_payment: bool
    explanation: str
