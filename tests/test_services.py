from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import func, select

from budget_api.db.upsert import insert_in_savepoint
from budget_api.models.models import (
    AccountType,
    Confidence,
    MatchSuggestion,
    SuggestionStatus,
    TransactionKind,
)
from budget_api.schemas.account import AccountCreate
from budget_api.schemas.transaction import TransactionIn
from budget_api.services.accounts import AccountService
from budget_api.services.errors import InvalidStateError, LinkValidationError, NotFoundError
from budget_api.services.linking import TransferLinkService
from budget_api.services.matching import TransferMatcherService
from budget_api.services.suggestions import SuggestionStore
from budget_api.services.transactions import TransactionService


def make_account(db, name, type_=AccountType.checking):
    return AccountService(db).create_account(AccountCreate(name=name, type=type_))


def make_txn(db, account, amount, day, description=""):
    # Inserted without running the matcher, as if it predates matching.
    return TransactionService(db).create_transaction(
        TransactionIn(account_id=account.id, amount=amount, date=day, description=description)
    )


def suggestion_count(db):
    return db.scalar(select(func.count()).select_from(MatchSuggestion))


def test_upsert_pending_treats_pair_as_unordered(db):
    checking = make_account(db, "Checking")
    savings = make_account(db, "Savings", AccountType.savings)
    a = make_txn(db, checking, -700, date(2026, 1, 10))
    b = make_txn(db, savings, 700, date(2026, 1, 10))

    store = SuggestionStore(db)
    first = store.upsert_pending(b.id, a.id, score=13, confidence=Confidence.high, is_credit_payment=False)
    assert first is not None
    assert (first.transaction_a_id, first.transaction_b_id) == (a.id, b.id)
    assert first.status == SuggestionStatus.pending

    again = store.upsert_pending(a.id, b.id, score=1, confidence=Confidence.low, is_credit_payment=False)
    assert again is None
    assert suggestion_count(db) == 1
    assert store.find_pair(b.id, a.id).score == 13


def test_candidate_search_filters_and_orders_by_proximity(db):
    checking = make_account(db, "Checking")
    savings = make_account(db, "Savings", AccountType.savings)
    cash = make_account(db, "Wallet", AccountType.cash)

    subject = make_txn(db, checking, -2000, date(2026, 1, 10))
    far = make_txn(db, savings, 2000, date(2026, 1, 13))
    near = make_txn(db, cash, 2000, date(2026, 1, 9))
    make_txn(db, savings, 2000, date(2026, 1, 14))
    make_txn(db, checking, 2000, date(2026, 1, 10))
    make_txn(db, savings, 2001, date(2026, 1, 10))

    matcher = TransferMatcherService(db)
    assert [c.id for c in matcher.find_candidates(subject)] == [near.id, far.id]

    capped = TransferMatcherService(db, max_candidates=1)
    assert [c.id for c in capped.find_candidates(subject)] == [near.id]

    created = matcher.suggest_for_transaction(subject)
    assert len(created) == 2
    # existing pairs are no longer candidates
    assert matcher.find_candidates(subject) == []
    assert matcher.suggest_for_transaction(subject) == []


def test_scan_finds_unmatched_history_once(db):
    checking = make_account(db, "Checking")
    visa = make_account(db, "Visa", AccountType.credit)

    make_txn(db, checking, -50000, date(2026, 1, 10), "Payment to Visa")
    make_txn(db, visa, 50000, date(2026, 1, 11), "Payment - thank you")
    make_txn(db, checking, -300, date(2026, 6, 1))
    make_txn(db, visa, 300, date(2026, 6, 1))
    assert suggestion_count(db) == 0

    matcher = TransferMatcherService(db)
    january = matcher.scan(start=date(2026, 1, 1), end=date(2026, 1, 31))
    assert len(january) == 1
    s = january[0]
    assert s.is_credit_payment is True
    assert s.score == 8 + 3 + 5
    assert s.confidence == Confidence.high

    assert len(matcher.scan()) == 1
    assert matcher.scan() == []
    assert suggestion_count(db) == 2


def test_transfer_transactions_are_not_matched(db):
    checking = make_account(db, "Checking")
    savings = make_account(db, "Savings", AccountType.savings)
    a = make_txn(db, checking, -900, date(2026, 1, 10))
    b = make_txn(db, savings, 900, date(2026, 1, 10))
    TransactionService(db).mark_transfer(b.id, checking.id)

    matcher = TransferMatcherService(db)
    assert matcher.suggest_for_transaction(a) == []
    assert matcher.suggest_for_transaction(b) == []


def test_failed_accept_rolls_back_everything(db, monkeypatch):
    checking = make_account(db, "Checking")
    savings = make_account(db, "Savings", AccountType.savings)
    cash = make_account(db, "Wallet", AccountType.cash)
    a = make_txn(db, checking, -10000, date(2026, 1, 10))
    b = make_txn(db, savings, 10000, date(2026, 1, 10))
    c = make_txn(db, cash, 10000, date(2026, 1, 10))
    matcher = TransferMatcherService(db)
    matcher.suggest_for_transaction(a)
    db.commit()

    store = SuggestionStore(db)
    ab = store.find_pair(a.id, b.id)
    ac = store.find_pair(a.id, c.id)

    svc = TransferLinkService(db)
    real_mark = svc.transactions.mark_transfer

    def lose_race_on_second(transaction_id, linked_account_id):
        if transaction_id == ab.transaction_b_id:
            return False
        return real_mark(transaction_id, linked_account_id)

    monkeypatch.setattr(svc.transactions, "mark_transfer", lose_race_on_second)

    with pytest.raises(InvalidStateError):
        svc.accept(ab.id)

    for txn in (a, b):
        db.refresh(txn)
        assert txn.kind == TransactionKind.normal
        assert txn.linked_account_id is None
    db.refresh(ab)
    db.refresh(ac)
    assert ab.status == SuggestionStatus.pending
    assert ab.reviewed_at is None
    assert ac.status == SuggestionStatus.pending


def test_accept_then_cascade_in_one_unit(db):
    checking = make_account(db, "Checking")
    savings = make_account(db, "Savings", AccountType.savings)
    cash = make_account(db, "Wallet", AccountType.cash)
    a = make_txn(db, checking, -10000, date(2026, 1, 10))
    b = make_txn(db, savings, 10000, date(2026, 1, 10))
    c = make_txn(db, cash, 10000, date(2026, 1, 12))
    TransferMatcherService(db).suggest_for_transaction(a)

    store = SuggestionStore(db)
    ab = store.find_pair(a.id, b.id)
    result = TransferLinkService(db).accept(ab.id)

    assert result.cascaded_rejections == 1
    assert result.suggestion.status == SuggestionStatus.accepted
    assert (result.transaction_a.linked_account_id, result.transaction_b.linked_account_id) == (savings.id, checking.id)
    assert store.find_pair(a.id, c.id).status == SuggestionStatus.rejected

    accepted = store.list_suggestions(status=SuggestionStatus.accepted)
    assert [s.id for s in accepted] == [ab.id]


def test_accept_rechecks_amounts_of_stored_pair(db):
    checking = make_account(db, "Checking")
    savings = make_account(db, "Savings", AccountType.savings)
    a = make_txn(db, checking, -5000, date(2026, 1, 10))
    b = make_txn(db, savings, 5000, date(2026, 1, 10))
    TransferMatcherService(db).suggest_for_transaction(a)
    suggestion = SuggestionStore(db).find_pair(a.id, b.id)

    b.amount = 999
    db.flush()

    with pytest.raises(LinkValidationError) as exc:
        TransferLinkService(db).accept(suggestion.id)
    assert exc.value.reason == "amount_mismatch"

    db.refresh(suggestion)
    assert suggestion.status == SuggestionStatus.pending
    for txn in (a, b):
        db.refresh(txn)
        assert txn.kind == TransactionKind.normal


def test_transaction_ids_are_not_reused_after_delete(db):
    checking = make_account(db, "Checking")
    first = make_txn(db, checking, -100, date(2026, 1, 10))
    last_id = make_txn(db, checking, -200, date(2026, 1, 10)).id

    assert TransactionService(db).delete_transaction(last_id) is True
    again = make_txn(db, checking, -300, date(2026, 1, 11))
    assert again.id > last_id > first.id


def test_delete_refuses_linked_transfer(db):
    checking = make_account(db, "Checking")
    savings = make_account(db, "Savings", AccountType.savings)
    a = make_txn(db, checking, -5000, date(2026, 1, 10))
    b = make_txn(db, savings, 5000, date(2026, 1, 10))
    TransferMatcherService(db).suggest_for_transaction(a)
    TransferLinkService(db).accept(SuggestionStore(db).find_pair(a.id, b.id).id)

    with pytest.raises(InvalidStateError):
        TransactionService(db).delete_transaction(b.id)

    assert suggestion_count(db) == 1
    db.refresh(b)
    assert b.kind == TransactionKind.transfer


def test_savepoint_insert_returns_none_on_conflict(db):
    checking = make_account(db, "Checking")
    savings = make_account(db, "Savings", AccountType.savings)
    a = make_txn(db, checking, -700, date(2026, 1, 10))
    b = make_txn(db, savings, 700, date(2026, 1, 10))
    values = {
        "transaction_a_id": a.id,
        "transaction_b_id": b.id,
        "score": 10,
        "confidence": Confidence.high,
        "is_credit_payment": False,
        "status": SuggestionStatus.pending,
    }

    new_id = insert_in_savepoint(db, MatchSuggestion, values)
    assert new_id is not None
    assert insert_in_savepoint(db, MatchSuggestion, values) is None
    # the outer transaction is still usable
    assert suggestion_count(db) == 1


def test_reject_unknown_suggestion(db):
    with pytest.raises(NotFoundError):
        TransferLinkService(db).reject(12345)
