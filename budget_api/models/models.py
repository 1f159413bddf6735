from __future__ import annotations

import enum
from datetime import date as calendar_date, datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from budget_api.db.base import Base


class AccountType(str, enum.Enum):
    checking = "checking"
    savings = "savings"
    cash = "cash"
    credit = "credit"


class TransactionKind(str, enum.Enum):
    normal = "normal"
    transfer = "transfer"


class Confidence(str, enum.Enum):
    high = "high"
    medium = "medium"
    low = "low"


class SuggestionStatus(str, enum.Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    type: Mapped[AccountType] = mapped_column(Enum(AccountType), nullable=False, default=AccountType.checking, server_default=AccountType.checking.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = {"sqlite_autoincrement": True}


class Transaction(Base):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), nullable=False, index=True)
    kind: Mapped[TransactionKind] = mapped_column(Enum(TransactionKind), nullable=False, default=TransactionKind.normal, server_default=TransactionKind.normal.value)
    linked_account_id: Mapped[int | None] = mapped_column(ForeignKey("accounts.id"), nullable=True)

    # Minor currency units; negative = outflow, positive = inflow.
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")
    date: Mapped[calendar_date] = mapped_column(Date, nullable=False)
    external_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    account: Mapped[Account] = relationship(foreign_keys=[account_id])

    __table_args__ = (
        UniqueConstraint("account_id", "external_id", name="uq_tx_account_external_id"),
        Index("ix_tx_amount_date", "amount", "date"),
        Index("ix_tx_account_date", "account_id", "date"),
        {"sqlite_autoincrement": True},
    )


class MatchSuggestion(Base):
    __tablename__ = "transfer_match_suggestions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # The pair is unordered; rows always store it with the smaller id first.
    transaction_a_id: Mapped[int] = mapped_column(ForeignKey("transactions.id"), nullable=False, index=True)
    transaction_b_id: Mapped[int] = mapped_column(ForeignKey("transactions.id"), nullable=False, index=True)

    score: Mapped[int] = mapped_column(Integer, nullable=False)
    confidence: Mapped[Confidence] = mapped_column(Enum(Confidence), nullable=False, index=True)
    is_credit_payment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    status: Mapped[SuggestionStatus] = mapped_column(Enum(SuggestionStatus), nullable=False, default=SuggestionStatus.pending, server_default=SuggestionStatus.pending.value, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    transaction_a: Mapped[Transaction] = relationship(foreign_keys=[transaction_a_id])
    transaction_b: Mapped[Transaction] = relationship(foreign_keys=[transaction_b_id])

    __table_args__ = (
        UniqueConstraint("transaction_a_id", "transaction_b_id", name="uq_suggestion_pair"),
        CheckConstraint("transaction_a_id < transaction_b_id", name="ck_suggestion_pair_ordered"),
        {"sqlite_autoincrement": True},
    )
