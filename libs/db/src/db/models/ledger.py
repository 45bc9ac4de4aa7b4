from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------
# Reference: li_accounts
# ---------------------------


class LiAccount(Base):
    __tablename__ = "li_accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    account_type: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("'checking'")
    )
    # Sum of all non-deleted transaction amounts, maintained on import.
    balance: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default=text("0"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )


# ---------------------------
# Reference: li_categories
# ---------------------------


class LiCategory(Base):
    __tablename__ = "li_categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    # Statement category hints resolve against lower(name).
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )


# ---------------------------
# Core: li_transactions
# ---------------------------


class LiTransaction(Base):
    __tablename__ = "li_transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("li_accounts.id"), nullable=False
    )
    # ISO YYYY-MM-DD; string comparison orders chronologically.
    date: Mapped[str] = mapped_column(String(10), nullable=False)
    # Signed minor units: income positive, expenses negative.
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    payee: Mapped[str | None] = mapped_column(Text, nullable=True)
    original_payee: Mapped[str | None] = mapped_column(Text, nullable=True)
    memo: Mapped[str | None] = mapped_column(Text, nullable=True)
    category_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("li_categories.id"), nullable=True
    )
    status: Mapped[str] = mapped_column(String, nullable=False, server_default=text("'cleared'"))
    # Both legs of a linked transfer share transfer_id and point at each
    # other's account through transfer_account_id.
    transfer_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    transfer_account_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("li_accounts.id"), nullable=True
    )
    import_source: Mapped[str | None] = mapped_column(String, nullable=True)
    import_batch_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        CheckConstraint(
            "status in ('pending','cleared','reconciled')",
            name="ck_li_tx_status",
        ),
        Index("ix_li_tx_account_date", "account_id", "date"),
        Index("ix_li_tx_transfer_id", "transfer_id"),
    )


__all__ = [
    "Base",
    "LiAccount",
    "LiCategory",
    "LiTransaction",
]
