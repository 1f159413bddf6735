from __future__ import annotations

from sqlalchemy.orm import Session

from budget_api.schemas.suggestion import SuggestionExplainOut
from budget_api.services.matching import TransferMatcherService
from budget_api.services.suggestions import SuggestionStore
from budget_api.services.transactions import TransactionService
from budget_api.utils.scoring import classify_confidence, explain


class ExplanationService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def explain(self, suggestion_id: int) -> SuggestionExplainOut:
        suggestion = SuggestionStore(self.db).get(suggestion_id)
        txns = TransactionService(self.db)
        txn_a = txns.get_transaction(suggestion.transaction_a_id)
        txn_b = txns.get_transaction(suggestion.transaction_b_id)

        # Recomputed from current data; the stored score is what the reviewer was shown.
        sb, credit_payment = TransferMatcherService(self.db).score_pair(txn_a, txn_b)
        return SuggestionExplainOut(
            suggestion_id=suggestion.id,
            stored_score=suggestion.score,
            score=sb.total,
            confidence=classify_confidence(sb.total),
            days_apart=sb.days_apart,
            date_score=sb.date_score,
            round_score=sb.round_score,
            description_score=sb.description_score,
            is_credit_payment=credit_payment,
            explanation=explain(sb, txn_a.amount),
        )
