from __future__ import annotations

from sqlalchemy import and_, delete, exists, insert, or_, select, update
from sqlalchemy.orm import Session

from budget_api.db.upsert import insert_or_ignore
from budget_api.models.models import MatchSuggestion, Transaction, TransactionKind
from budget_api.schemas.transaction import TransactionFilters, TransactionIn
from budget_api.services.accounts import AccountService
from budget_api.services.errors import InvalidStateError, NotFoundError


class TransactionService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def create_transaction(self, data: TransactionIn) -> Transaction:
        AccountService(self.db).get_account(data.account_id)
        txn = Transaction(
            account_id=data.account_id,
            amount=data.amount,
            description=data.description,
            date=data.date,
            external_id=data.external_id,
        )
        self.db.add(txn)
        self.db.flush()
        return txn

    def import_transactions(self, transactions: list[TransactionIn]) -> tuple[list[Transaction], int]:
        """Insert a batch, skipping rows whose (account_id, external_id) already exists.

        Returns the newly inserted transactions and the number skipped.
        """
        accounts = AccountService(self.db).get_many({t.account_id for t in transactions})
        missing = {t.account_id for t in transactions} - accounts.keys()
        if missing:
            raise NotFoundError(f"Account(s) not found: {sorted(missing)}")

        created_ids: list[int] = []
        skipped = 0
        for t in transactions:
            values = {
                "account_id": t.account_id,
                "amount": t.amount,
                "description": t.description,
                "date": t.date,
                "external_id": t.external_id,
            }
            if t.external_id:
                new_id = insert_or_ignore(self.db, Transaction, values, conflict_columns=["account_id", "external_id"])
            else:
                # No natural key; always insert.
                new_id = self.db.execute(insert(Transaction).values(**values).returning(Transaction.id)).scalar_one()
            if new_id is None:
                skipped += 1
            else:
                created_ids.append(new_id)

        created = [self.get_transaction(i) for i in created_ids]
        return created, skipped

    def list_transactions(self, filters: TransactionFilters | None = None) -> list[Transaction]:
        stmt = select(Transaction)
        if filters:
            if filters.account_id is not None:
                stmt = stmt.where(Transaction.account_id == filters.account_id)
            if filters.kind:
                stmt = stmt.where(Transaction.kind == filters.kind)
        stmt = stmt.order_by(Transaction.date, Transaction.id)
        return list(self.db.scalars(stmt))

    def get_transaction(self, transaction_id: int) -> Transaction:
        txn = self.db.get(Transaction, transaction_id)
        if txn is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return txn

    def delete_transaction(self, transaction_id: int) -> bool:
        """Delete a normal transaction that no suggestion references.

        Linked transfers and transactions with matching history raise
        InvalidStateError; suggestion rows are kept as the audit trail.
        """
        if self.db.get(Transaction, transaction_id) is None:
            return False
        referenced = exists().where(
            or_(
                MatchSuggestion.transaction_a_id == transaction_id,
                MatchSuggestion.transaction_b_id == transaction_id,
            )
        )
        res = self.db.execute(
            delete(Transaction)
            .where(
                and_(
                    Transaction.id == transaction_id,
                    Transaction.kind == TransactionKind.normal,
                    ~referenced,
                )
            )
            .execution_options(synchronize_session="fetch")
        )
        if res.rowcount != 1:
            raise InvalidStateError(
                f"Transaction {transaction_id} is linked or has transfer suggestions and cannot be deleted"
            )
        return True

    def mark_transfer(self, transaction_id: int, linked_account_id: int) -> bool:
        """Retype a still-normal transaction as a transfer to ``linked_account_id``.

        Compare-and-set on ``kind``: returns False when the row is gone or was
        already linked by someone else.
        """
        res = self.db.execute(
            update(Transaction)
            .where(and_(Transaction.id == transaction_id, Transaction.kind == TransactionKind.normal))
            .values(kind=TransactionKind.transfer, linked_account_id=linked_account_id)
            .execution_options(synchronize_session="fetch")
        )
        return res.rowcount == 1
