from __future__ import annotations

from datetime import date as calendar_date, datetime
from enum import Enum

import strawberry
from fastapi import Depends
from sqlalchemy.orm import Session
from strawberry.fastapi import BaseContext, GraphQLRouter
from strawberry.types import Info

from budget_api.db.deps import get_db
from budget_api.models.models import Confidence, MatchSuggestion, SuggestionStatus, Transaction
from budget_api.services.linking import LinkResult, TransferLinkService
from budget_api.services.suggestions import SuggestionStore


# ---------------------------
# GraphQL context (per request)
# ---------------------------

class Context(BaseContext):
    def __init__(self, db: Session) -> None:
        super().__init__()
        self.db = db


def get_context(db: Session = Depends(get_db)) -> Context:
    return Context(db=db)


# ---------------------------
# GraphQL Types
# ---------------------------

@strawberry.enum
class GSuggestionStatus(Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"


@strawberry.enum
class GConfidence(Enum):
    high = "high"
    medium = "medium"
    low = "low"


@strawberry.type
class TransactionType:
    id: int
    account_id: int
    kind: str
    linked_account_id: int | None
    amount: int
    description: str
    date: calendar_date


@strawberry.type
class SuggestionType:
    id: int
    transaction_a_id: int
    transaction_b_id: int
    score: int
    confidence: GConfidence
    is_credit_payment: bool
    status: GSuggestionStatus
    created_at: datetime
    reviewed_at: datetime | None


@strawberry.type
class LinkResultType:
    suggestion: SuggestionType
    transactions: list[TransactionType]


def _txn(t: Transaction) -> TransactionType:
    return TransactionType(
        id=t.id,
        account_id=t.account_id,
        kind=t.kind.value,
        linked_account_id=t.linked_account_id,
        amount=t.amount,
        description=t.description,
        date=t.date,
    )


def _suggestion(s: MatchSuggestion) -> SuggestionType:
    return SuggestionType(
        id=s.id,
        transaction_a_id=s.transaction_a_id,
        transaction_b_id=s.transaction_b_id,
        score=s.score,
        confidence=GConfidence(s.confidence.value),
        is_credit_payment=s.is_credit_payment,
        status=GSuggestionStatus(s.status.value),
        created_at=s.created_at,
        reviewed_at=s.reviewed_at,
    )


def _link(result: LinkResult) -> LinkResultType:
    return LinkResultType(
        suggestion=_suggestion(result.suggestion),
        transactions=[_txn(result.transaction_a), _txn(result.transaction_b)],
    )


# ---------------------------
# Query
# ---------------------------

@strawberry.type
class Query:
    @strawberry.field
    def transfer_suggestions(
        self,
        info: Info,
        status: GSuggestionStatus | None = None,
        confidence: GConfidence | None = None,
    ) -> list[SuggestionType]:
        db = info.context.db
        items = SuggestionStore(db).list_suggestions(
            status=SuggestionStatus(status.value) if status else None,
            confidence=Confidence(confidence.value) if confidence else None,
        )
        return [_suggestion(s) for s in items]


# ---------------------------
# Mutation
# ---------------------------

@strawberry.type
class Mutation:
    @strawberry.mutation
    def accept_suggestion(self, info: Info, suggestion_id: int) -> LinkResultType:
        return _link(TransferLinkService(info.context.db).accept(suggestion_id))

    @strawberry.mutation
    def reject_suggestion(self, info: Info, suggestion_id: int) -> SuggestionType:
        return _suggestion(TransferLinkService(info.context.db).reject(suggestion_id))

    @strawberry.mutation
    def manual_link(self, info: Info, transaction_a_id: int, transaction_b_id: int) -> LinkResultType:
        return _link(TransferLinkService(info.context.db).manual_link(transaction_a_id, transaction_b_id))


schema = strawberry.Schema(query=Query, mutation=Mutation)
graphql_router = GraphQLRouter(schema, context_getter=get_context)
