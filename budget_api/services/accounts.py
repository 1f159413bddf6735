from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from budget_api.models.models import Account
from budget_api.schemas.account import AccountCreate
from budget_api.services.errors import NotFoundError


class AccountService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def create_account(self, data: AccountCreate) -> Account:
        account = Account(name=data.name, type=data.type)
        self.db.add(account)
        self.db.flush()
        return account

    def list_accounts(self) -> list[Account]:
        return list(self.db.scalars(select(Account).order_by(Account.id)))

    def get_account(self, account_id: int) -> Account:
        account = self.db.get(Account, account_id)
        if account is None:
            raise NotFoundError(f"Account {account_id} not found")
        return account

    def get_many(self, account_ids: set[int]) -> dict[int, Account]:
        if not account_ids:
            return {}
        rows = self.db.scalars(select(Account).where(Account.id.in_(account_ids)))
        return {a.id: a for a in rows}
