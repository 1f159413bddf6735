from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import and_, or_, select, update
from sqlalchemy.orm import Session, selectinload

from budget_api.db.upsert import insert_or_ignore
from budget_api.models.models import Confidence, MatchSuggestion, SuggestionStatus
from budget_api.services.errors import InvalidStateError, NotFoundError

_TRANSITIONS: dict[SuggestionStatus, frozenset[SuggestionStatus]] = {
    SuggestionStatus.pending: frozenset({SuggestionStatus.accepted, SuggestionStatus.rejected}),
    SuggestionStatus.accepted: frozenset(),
    SuggestionStatus.rejected: frozenset(),
}


def check_transition(current: SuggestionStatus, target: SuggestionStatus) -> None:
    if target not in _TRANSITIONS[current]:
        raise InvalidStateError(f"Suggestion is {current.value}; cannot move to {target.value}")


def ordered_pair(a_id: int, b_id: int) -> tuple[int, int]:
    return (a_id, b_id) if a_id < b_id else (b_id, a_id)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SuggestionStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def upsert_pending(
        self,
        a_id: int,
        b_id: int,
        *,
        score: int,
        confidence: Confidence,
        is_credit_payment: bool,
    ) -> MatchSuggestion | None:
        """Insert a pending suggestion for the unordered pair.

        No-op (returns None) when the pair already has a row in any status.
        """
        low, high = ordered_pair(a_id, b_id)
        new_id = insert_or_ignore(
            self.db,
            MatchSuggestion,
            {
                "transaction_a_id": low,
                "transaction_b_id": high,
                "score": score,
                "confidence": confidence,
                "is_credit_payment": is_credit_payment,
                "status": SuggestionStatus.pending,
            },
            conflict_columns=["transaction_a_id", "transaction_b_id"],
        )
        if new_id is None:
            return None
        return self.db.get(MatchSuggestion, new_id)

    def get(self, suggestion_id: int) -> MatchSuggestion:
        suggestion = self.db.get(MatchSuggestion, suggestion_id)
        if suggestion is None:
            raise NotFoundError(f"Suggestion {suggestion_id} not found")
        return suggestion

    def find_pair(self, a_id: int, b_id: int) -> MatchSuggestion | None:
        low, high = ordered_pair(a_id, b_id)
        return self.db.scalar(
            select(MatchSuggestion).where(
                and_(MatchSuggestion.transaction_a_id == low, MatchSuggestion.transaction_b_id == high)
            )
        )

    def list_suggestions(
        self,
        *,
        status: SuggestionStatus | None = None,
        confidence: Confidence | None = None,
    ) -> list[MatchSuggestion]:
        stmt = select(MatchSuggestion).options(
            selectinload(MatchSuggestion.transaction_a),
            selectinload(MatchSuggestion.transaction_b),
        )
        if status:
            stmt = stmt.where(MatchSuggestion.status == status)
        if confidence:
            stmt = stmt.where(MatchSuggestion.confidence == confidence)
        stmt = stmt.order_by(MatchSuggestion.score.desc(), MatchSuggestion.created_at.desc(), MatchSuggestion.id)
        return list(self.db.scalars(stmt))

    def transition(self, suggestion: MatchSuggestion, target: SuggestionStatus) -> None:
        """Move a pending suggestion to a terminal status.

        The UPDATE is conditional on the row still being pending, so a
        concurrent reviewer that got there first makes this raise.
        """
        check_transition(suggestion.status, target)
        res = self.db.execute(
            update(MatchSuggestion)
            .where(and_(MatchSuggestion.id == suggestion.id, MatchSuggestion.status == SuggestionStatus.pending))
            .values(status=target, reviewed_at=_now())
            .execution_options(synchronize_session="fetch")
        )
        if res.rowcount != 1:
            raise InvalidStateError(f"Suggestion {suggestion.id} was already reviewed")

    def reject_pending_touching(self, transaction_ids: list[int], *, exclude_id: int | None = None) -> int:
        """Reject every other pending suggestion that references any of the given transactions."""
        conditions = [
            MatchSuggestion.status == SuggestionStatus.pending,
            or_(
                MatchSuggestion.transaction_a_id.in_(transaction_ids),
                MatchSuggestion.transaction_b_id.in_(transaction_ids),
            ),
        ]
        if exclude_id is not None:
            conditions.append(MatchSuggestion.id != exclude_id)
        res = self.db.execute(
            update(MatchSuggestion)
            .where(and_(*conditions))
            .values(status=SuggestionStatus.rejected, reviewed_at=_now())
            .execution_options(synchronize_session="fetch")
        )
        return res.rowcount
