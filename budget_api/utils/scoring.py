from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date

from budget_api.models.models import AccountType, Confidence

MAX_WINDOW_DAYS = 3

BASE_MATCH_WEIGHT = 10
DAY_PENALTY = 2
ROUND_AMOUNT_BONUS = 3
DESCRIPTION_BONUS = 5

# Minor units per whole currency unit.
MINOR_UNITS = 100

HIGH_CONFIDENCE_MIN = BASE_MATCH_WEIGHT
MEDIUM_CONFIDENCE_MIN = 6

TRANSFER_KEYWORDS = frozenset({"transfer", "xfer", "trf", "payment", "pmt", "from", "to"})

_TOKEN_RE = re.compile(r"[a-z0-9]+")


def _norm(s: str | None) -> str:
    return (s or "").lower().strip()


def tokens(s: str | None) -> set[str]:
    return set(_TOKEN_RE.findall(_norm(s)))


def days_apart(a: date, b: date) -> int:
    return abs((a - b).days)


def date_proximity_weight(days: int) -> int:
    """Base weight for an admitted pair: full weight same-day, minus DAY_PENALTY per day."""
    return max(BASE_MATCH_WEIGHT - DAY_PENALTY * days, 0)


def is_round_amount(amount: int) -> bool:
    return amount != 0 and abs(amount) % MINOR_UNITS == 0


def round_amount_bonus(amount: int) -> int:
    return ROUND_AMOUNT_BONUS if is_round_amount(amount) else 0


def has_transfer_keyword(description: str | None) -> bool:
    return bool(tokens(description) & TRANSFER_KEYWORDS)


def mentions_account(description: str | None, account_name: str | None) -> bool:
    """True when the account name appears in the description as a run of whole words."""
    name = _TOKEN_RE.findall(_norm(account_name))
    if not name:
        return False
    words = _TOKEN_RE.findall(_norm(description))
    width = len(name)
    return any(words[i : i + width] == name for i in range(len(words) - width + 1))


def description_bonus(
    desc_a: str | None,
    desc_b: str | None,
    account_name_a: str | None = None,
    account_name_b: str | None = None,
) -> int:
    if has_transfer_keyword(desc_a) or has_transfer_keyword(desc_b):
        return DESCRIPTION_BONUS
    if mentions_account(desc_a, account_name_b) or mentions_account(desc_b, account_name_a):
        return DESCRIPTION_BONUS
    return 0


@dataclass(frozen=True)
class ScoreBreakdown:
    days_apart: int
    date_score: int
    round_score: int
    description_score: int
    total: int


@dataclass(frozen=True)
class PairSide:
    amount: int
    date: date
    description: str | None = None
    account_name: str | None = None
    account_type: AccountType | None = None


def compute_score(a: PairSide, b: PairSide) -> ScoreBreakdown:
    """Deterministic, symmetric score for an admitted candidate pair.

    Admission (opposite amounts, distinct accounts, date window) is the
    caller's job; the signals here only rank pairs that already qualify.
    """
    days = days_apart(a.date, b.date)
    date_score = date_proximity_weight(days)
    round_score = round_amount_bonus(a.amount)
    desc_score = description_bonus(a.description, b.description, a.account_name, b.account_name)
    return ScoreBreakdown(
        days_apart=days,
        date_score=date_score,
        round_score=round_score,
        description_score=desc_score,
        total=date_score + round_score + desc_score,
    )


def classify_confidence(score: int) -> Confidence:
    if score >= HIGH_CONFIDENCE_MIN:
        return Confidence.high
    if score >= MEDIUM_CONFIDENCE_MIN:
        return Confidence.medium
    return Confidence.low


def is_credit_payment(a: PairSide, b: PairSide) -> bool:
    """True when exactly one side is a credit account and it receives the money."""
    a_credit = a.account_type == AccountType.credit
    b_credit = b.account_type == AccountType.credit
    if a_credit == b_credit:
        return False
    credit_side = a if a_credit else b
    return credit_side.amount > 0


def explain(breakdown: ScoreBreakdown, amount: int) -> str:
    parts = [f"Opposite amounts of {abs(amount) / MINOR_UNITS:.2f}"]
    if breakdown.days_apart == 0:
        parts.append("same day")
    else:
        parts.append(f"{breakdown.days_apart} day(s) apart")
    if breakdown.round_score:
        parts.append("round amount")
    if breakdown.description_score:
        parts.append("descriptions look like a transfer")
    confidence = classify_confidence(breakdown.total)
    return "; ".join(parts) + f". Score {breakdown.total} suggests {confidence.value} confidence."
