from __future__ import annotations

from datetime import date, timedelta

from sqlalchemy import and_, case, exists, or_, select
from sqlalchemy.orm import Session

from budget_api.config import settings
from budget_api.logger import get_logger, log_timing
from budget_api.models.models import Account, MatchSuggestion, Transaction, TransactionKind
from budget_api.services.accounts import AccountService
from budget_api.services.suggestions import SuggestionStore
from budget_api.utils.scoring import (
    PairSide,
    ScoreBreakdown,
    classify_confidence,
    compute_score,
    is_credit_payment,
)

logger = get_logger(__name__)


def pair_side(txn: Transaction, account: Account | None) -> PairSide:
    return PairSide(
        amount=txn.amount,
        date=txn.date,
        description=txn.description,
        account_name=account.name if account else None,
        account_type=account.type if account else None,
    )


class TransferMatcherService:
    """Finds opposite-amount transactions on other accounts and records them as pending suggestions."""

    def __init__(
        self,
        db: Session,
        *,
        window_days: int | None = None,
        max_candidates: int | None = None,
    ) -> None:
        self.db = db
        self.window_days = settings.match_window_days if window_days is None else window_days
        self.max_candidates = settings.max_candidates_per_transaction if max_candidates is None else max_candidates
        self.store = SuggestionStore(db)
        self.accounts = AccountService(db)

    def find_candidates(self, txn: Transaction) -> list[Transaction]:
        if txn.amount == 0:
            return []

        already_suggested = exists().where(
            or_(
                and_(MatchSuggestion.transaction_a_id == txn.id, MatchSuggestion.transaction_b_id == Transaction.id),
                and_(MatchSuggestion.transaction_a_id == Transaction.id, MatchSuggestion.transaction_b_id == txn.id),
            )
        )
        window = timedelta(days=self.window_days)
        # Day distance as a CASE over the window dates, so ordering and the cap stay in SQL.
        distance = case(
            *[
                (Transaction.date == txn.date + timedelta(days=offset), abs(offset))
                for offset in range(-self.window_days, self.window_days + 1)
            ],
            else_=self.window_days + 1,
        )
        stmt = (
            select(Transaction)
            .where(
                and_(
                    Transaction.id != txn.id,
                    Transaction.account_id != txn.account_id,
                    Transaction.amount == -txn.amount,
                    Transaction.kind == TransactionKind.normal,
                    Transaction.date >= txn.date - window,
                    Transaction.date <= txn.date + window,
                    ~already_suggested,
                )
            )
            .order_by(distance, Transaction.id)
            .limit(self.max_candidates)
        )
        return list(self.db.scalars(stmt))

    def score_pair(self, txn: Transaction, other: Transaction) -> tuple[ScoreBreakdown, bool]:
        accounts = self.accounts.get_many({txn.account_id, other.account_id})
        a = pair_side(txn, accounts.get(txn.account_id))
        b = pair_side(other, accounts.get(other.account_id))
        return compute_score(a, b), is_credit_payment(a, b)

    def suggest_for_transaction(self, txn: Transaction) -> list[MatchSuggestion]:
        if txn.kind != TransactionKind.normal:
            return []

        candidates = self.find_candidates(txn)
        created: list[MatchSuggestion] = []
        for candidate in candidates:
            breakdown, credit_payment = self.score_pair(txn, candidate)
            suggestion = self.store.upsert_pending(
                txn.id,
                candidate.id,
                score=breakdown.total,
                confidence=classify_confidence(breakdown.total),
                is_credit_payment=credit_payment,
            )
            if suggestion is not None:
                created.append(suggestion)

        self.db.flush()
        logger.debug(
            "transfer candidates evaluated",
            transaction_id=txn.id,
            candidates=len(candidates),
            suggestions_created=len(created),
        )
        return created

    def suggest_for_transactions(self, txns: list[Transaction]) -> list[MatchSuggestion]:
        created: list[MatchSuggestion] = []
        for txn in txns:
            created.extend(self.suggest_for_transaction(txn))
        if created:
            logger.info("transfer suggestions created", transactions=len(txns), suggestions_created=len(created))
        return created

    def scan(self, *, start: date | None = None, end: date | None = None) -> list[MatchSuggestion]:
        """Re-run suggestion generation over every normal transaction, oldest first."""
        stmt = select(Transaction).where(Transaction.kind == TransactionKind.normal)
        if start:
            stmt = stmt.where(Transaction.date >= start)
        if end:
            stmt = stmt.where(Transaction.date <= end)
        stmt = stmt.order_by(Transaction.date, Transaction.id)

        with log_timing("transfer scan", logger=logger, start=start, end=end) as timing:
            txns = list(self.db.scalars(stmt))
            created: list[MatchSuggestion] = []
            for txn in txns:
                created.extend(self.suggest_for_transaction(txn))
            timing.update(transactions=len(txns), suggestions_created=len(created))
        return created
