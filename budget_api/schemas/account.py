from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from budget_api.models.models import AccountType
from budget_api.schemas.common import OrmBase


class AccountCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    type: AccountType = AccountType.checking


class AccountOut(OrmBase):
    id: int
    name: str
    type: AccountType
    created_at: datetime
