"""Accept/reject workflow for transfer suggestions, plus manual linking.

Every mutation runs inside a SAVEPOINT and each write is conditional on the
row still being in the state we read, so a failed or lost-race accept leaves
both transactions and all suggestions exactly as they were.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from budget_api.logger import get_logger
from budget_api.models.models import MatchSuggestion, SuggestionStatus, Transaction, TransactionKind
from budget_api.services.errors import InvalidStateError, LinkValidationError
from budget_api.services.matching import TransferMatcherService
from budget_api.services.suggestions import SuggestionStore, check_transition
from budget_api.services.transactions import TransactionService
from budget_api.utils.scoring import classify_confidence

logger = get_logger(__name__)


@dataclass
class LinkResult:
    suggestion: MatchSuggestion
    transaction_a: Transaction
    transaction_b: Transaction
    cascaded_rejections: int = 0


class TransferLinkService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.store = SuggestionStore(db)
        self.transactions = TransactionService(db)

    def accept(self, suggestion_id: int) -> LinkResult:
        suggestion = self.store.get(suggestion_id)
        try:
            check_transition(suggestion.status, SuggestionStatus.accepted)
            txn_a = self.transactions.get_transaction(suggestion.transaction_a_id)
            txn_b = self.transactions.get_transaction(suggestion.transaction_b_id)
            if txn_a.kind == TransactionKind.transfer or txn_b.kind == TransactionKind.transfer:
                raise InvalidStateError("One or both transactions are already linked")
            # Stored ids are re-checked; the rows may have changed since the suggestion was made.
            self._validate_pair(txn_a, txn_b)

            with self.db.begin_nested():
                cascaded = self._link(suggestion, txn_a, txn_b)
        except (InvalidStateError, LinkValidationError) as e:
            logger.warning("suggestion accept refused", suggestion_id=suggestion_id, reason=str(e))
            raise

        self._refresh(suggestion, txn_a, txn_b)
        logger.info(
            "suggestion accepted",
            suggestion_id=suggestion.id,
            transaction_a_id=txn_a.id,
            transaction_b_id=txn_b.id,
            cascaded_rejections=cascaded,
        )
        return LinkResult(suggestion=suggestion, transaction_a=txn_a, transaction_b=txn_b, cascaded_rejections=cascaded)

    def reject(self, suggestion_id: int) -> MatchSuggestion:
        suggestion = self.store.get(suggestion_id)
        try:
            with self.db.begin_nested():
                self.store.transition(suggestion, SuggestionStatus.rejected)
        except InvalidStateError as e:
            logger.warning("suggestion reject refused", suggestion_id=suggestion_id, reason=str(e))
            raise

        self.db.refresh(suggestion)
        logger.info("suggestion rejected", suggestion_id=suggestion.id)
        return suggestion

    def manual_link(self, transaction_a_id: int, transaction_b_id: int) -> LinkResult:
        """Link two transactions the matcher never paired (or paired but was overruled).

        Goes through a suggestion row so the decision is recorded the same way
        an accepted suggestion is.
        """
        if transaction_a_id == transaction_b_id:
            raise LinkValidationError("same_transaction", "Cannot link a transaction to itself")

        txn_a = self.transactions.get_transaction(transaction_a_id)
        txn_b = self.transactions.get_transaction(transaction_b_id)
        self._validate_pair(txn_a, txn_b)
        if txn_a.kind == TransactionKind.transfer or txn_b.kind == TransactionKind.transfer:
            raise LinkValidationError("already_linked", "One or both transactions are already linked")

        with self.db.begin_nested():
            suggestion = self.store.find_pair(txn_a.id, txn_b.id)
            if suggestion is None:
                breakdown, credit_payment = TransferMatcherService(self.db).score_pair(txn_a, txn_b)
                self.store.upsert_pending(
                    txn_a.id,
                    txn_b.id,
                    score=breakdown.total,
                    confidence=classify_confidence(breakdown.total),
                    is_credit_payment=credit_payment,
                )
                # Re-read: a concurrent generator may have inserted the row first.
                suggestion = self.store.find_pair(txn_a.id, txn_b.id)

            if suggestion.status == SuggestionStatus.pending:
                cascaded = self._link(suggestion, txn_a, txn_b)
            elif suggestion.status == SuggestionStatus.rejected:
                # Operator overrides an earlier rejection; the rejected row stays as the audit record.
                self._mark_pair(txn_a, txn_b)
                cascaded = self.store.reject_pending_touching([txn_a.id, txn_b.id])
            else:
                raise InvalidStateError("Transactions were already linked by an accepted suggestion")

        self._refresh(suggestion, txn_a, txn_b)
        logger.info(
            "transactions manually linked",
            suggestion_id=suggestion.id,
            transaction_a_id=txn_a.id,
            transaction_b_id=txn_b.id,
            cascaded_rejections=cascaded,
        )
        return LinkResult(suggestion=suggestion, transaction_a=txn_a, transaction_b=txn_b, cascaded_rejections=cascaded)

    def _validate_pair(self, txn_a: Transaction, txn_b: Transaction) -> None:
        if txn_a.account_id == txn_b.account_id:
            raise LinkValidationError("same_account", "Transactions must be in different accounts")
        if txn_a.amount == 0 or txn_b.amount == 0:
            raise LinkValidationError("zero_amount", "Zero-amount transactions cannot be linked")
        if txn_a.amount != -txn_b.amount:
            raise LinkValidationError("amount_mismatch", "Amounts must be equal and of opposite sign")

    def _link(self, suggestion: MatchSuggestion, txn_a: Transaction, txn_b: Transaction) -> int:
        self._mark_pair(txn_a, txn_b)
        self.store.transition(suggestion, SuggestionStatus.accepted)
        return self.store.reject_pending_touching([txn_a.id, txn_b.id], exclude_id=suggestion.id)

    def _mark_pair(self, txn_a: Transaction, txn_b: Transaction) -> None:
        if not self.transactions.mark_transfer(txn_a.id, txn_b.account_id):
            raise InvalidStateError(f"Transaction {txn_a.id} was linked concurrently")
        if not self.transactions.mark_transfer(txn_b.id, txn_a.account_id):
            raise InvalidStateError(f"Transaction {txn_b.id} was linked concurrently")

    def _refresh(self, *objs: object) -> None:
        self.db.flush()
        for obj in objs:
            self.db.refresh(obj)
