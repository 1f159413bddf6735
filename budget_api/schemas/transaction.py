from __future__ import annotations

from datetime import date as calendar_date, datetime

from pydantic import BaseModel, Field, field_validator

from budget_api.models.models import TransactionKind
from budget_api.schemas.common import OrmBase


class TransactionIn(BaseModel):
    account_id: int
    amount: int = Field(description="Signed amount in minor units; negative is an outflow")
    description: str = Field(default="", max_length=500)
    date: calendar_date
    external_id: str | None = Field(default=None, max_length=128)

    @field_validator("amount")
    @classmethod
    def amount_not_zero(cls, v: int) -> int:
        if v == 0:
            raise ValueError("amount must be non-zero")
        return v


class TransactionOut(OrmBase):
    id: int
    account_id: int
    kind: TransactionKind
    linked_account_id: int | None
    amount: int
    description: str
    date: calendar_date
    external_id: str | None
    created_at: datetime
    updated_at: datetime


class TransactionFilters(BaseModel):
    account_id: int | None = None
    kind: TransactionKind | None = None


class ImportResult(BaseModel):
    inserted: int
    skipped: int
    created_ids: list[int]
    suggestions_created: int
