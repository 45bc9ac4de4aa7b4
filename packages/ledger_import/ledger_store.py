"""SQL-backed ledger implementing :class:`~ledger_import.committer.LedgerBackend`.

Storage goes through the workspace ``db`` library (SQLAlchemy 2.0 ORM); each
operation runs in its own ``session_scope`` transaction.

Import semantics
----------------
- ``pdf_category`` hints resolve case-insensitively to an existing category.
- A row is a duplicate when the account already holds a non-deleted
  transaction with the same date, amount and payee (``NULL`` payees match each
  other); duplicates are skipped and counted.
- New rows share one ``import_batch_id`` and start ``cleared``.
- Rows still uncategorized after import take the category of the most recent
  categorized transaction with the same payee; ``categorized`` counts them.
- The account balance is recomputed as the sum of its transaction amounts.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import date, timedelta

from db.client import init_schema, session_scope
from db.models.ledger import LiAccount, LiCategory, LiTransaction
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import TransferDetectionError
from .logging_setup import get_logger
from .models import (
    Account,
    Category,
    ImportCounts,
    ImportPayloadItem,
    LedgerTransaction,
    TransferCandidate,
)
from .transfers import find_transfer_candidates, transfer_window_days

DEFAULT_IMPORT_SOURCE = "file_import"

_log = get_logger("ledger_import.ledger_store")


def _account(row: LiAccount) -> Account:
    return Account(id=row.id, name=row.name, account_type=row.account_type, balance=row.balance)


def _transaction(row: LiTransaction) -> LedgerTransaction:
    return LedgerTransaction(
        id=row.id,
        account_id=row.account_id,
        date=row.date,
        amount=row.amount,
        payee=row.payee,
        memo=row.memo,
        category_id=row.category_id,
        transfer_id=row.transfer_id,
        transfer_account_id=row.transfer_account_id,
    )


class SqlLedgerBackend:
    """Ledger stored in the database at ``database_url`` (or ``DATABASE_URL``)."""

    def __init__(
        self,
        database_url: str | None = None,
        *,
        import_source: str = DEFAULT_IMPORT_SOURCE,
        create_schema: bool = True,
    ) -> None:
        self.database_url = database_url
        self.import_source = import_source
        if create_schema:
            init_schema(database_url=database_url)

    def _scope(self):
        return session_scope(database_url=self.database_url)

    # -- accounts & categories ---------------------------------------------

    def list_accounts(self) -> list[Account]:
        with self._scope() as session:
            rows = session.scalars(select(LiAccount).order_by(LiAccount.name)).all()
            return [_account(r) for r in rows]

    def create_account(self, name: str, account_type: str = "checking") -> Account:
        clean = name.strip()
        if not clean:
            raise ValueError("account name must be non-empty")
        with self._scope() as session:
            row = LiAccount(name=clean, account_type=account_type, balance=0)
            session.add(row)
            session.flush()
            _log.info("Created account %s (%s)", clean, row.id)
            return _account(row)

    def find_account(self, name_or_id: str) -> Account | None:
        """Look an account up by id, then by case-insensitive name."""

        with self._scope() as session:
            row = session.get(LiAccount, name_or_id)
            if row is None:
                row = session.scalars(
                    select(LiAccount).where(func.lower(LiAccount.name) == name_or_id.lower())
                ).first()
            return _account(row) if row is not None else None

    def list_categories(self) -> list[Category]:
        with self._scope() as session:
            rows = session.scalars(select(LiCategory).order_by(LiCategory.name)).all()
            return [Category(id=r.id, name=r.name) for r in rows]

    def create_category(self, name: str) -> Category:
        clean = name.strip()
        if not clean:
            raise ValueError("category name must be non-empty")
        with self._scope() as session:
            row = LiCategory(name=clean)
            session.add(row)
            session.flush()
            return Category(id=row.id, name=row.name)

    def list_transactions(self, account_id: str | None = None) -> list[LedgerTransaction]:
        with self._scope() as session:
            stmt = select(LiTransaction).where(LiTransaction.deleted_at.is_(None))
            if account_id is not None:
                stmt = stmt.where(LiTransaction.account_id == account_id)
            rows = session.scalars(stmt.order_by(LiTransaction.date, LiTransaction.id)).all()
            return [_transaction(r) for r in rows]

    # -- import ------------------------------------------------------------

    def import_transactions(
        self, account_id: str, transactions: Sequence[ImportPayloadItem]
    ) -> ImportCounts:
        batch_id = str(uuid.uuid4())
        imported = skipped = 0
        with self._scope() as session:
            account = session.get(LiAccount, account_id)
            if account is None:
                raise LookupError(f"unknown account: {account_id}")
            categories = session.execute(select(LiCategory.id, LiCategory.name)).all()
            by_name = {name.lower(): cid for cid, name in categories}

            new_rows: list[LiTransaction] = []
            for item in transactions:
                if _is_duplicate(session, account_id, item):
                    skipped += 1
                    continue
                category_id = by_name.get(item.pdf_category.lower()) if item.pdf_category else None
                row = LiTransaction(
                    account_id=account_id,
                    date=item.date,
                    amount=item.amount,
                    payee=item.payee,
                    original_payee=item.payee,
                    memo=item.memo,
                    category_id=category_id,
                    status="cleared",
                    import_source=self.import_source,
                    import_batch_id=batch_id,
                )
                session.add(row)
                # Flush per row so later rows of the same batch see it as a duplicate.
                session.flush()
                new_rows.append(row)
                imported += 1

            categorized = _categorize_from_history(session, new_rows, batch_id)
            account.balance = _account_total(session, account_id)

        _log.info(
            "Batch %s: imported=%d skipped=%d categorized=%d",
            batch_id,
            imported,
            skipped,
            categorized,
        )
        return ImportCounts(
            imported=imported, skipped=skipped, categorized=categorized, batch_id=batch_id
        )

    # -- transfers ---------------------------------------------------------

    def detect_transfers(self, today: date | None = None) -> list[TransferCandidate]:
        ref = today or date.today()
        cutoff = (ref - timedelta(days=transfer_window_days())).isoformat()
        try:
            with self._scope() as session:
                rows = session.scalars(
                    select(LiTransaction).where(
                        LiTransaction.deleted_at.is_(None),
                        LiTransaction.transfer_id.is_(None),
                        LiTransaction.date >= cutoff,
                    )
                ).all()
                pool = [_transaction(r) for r in rows]
        except SQLAlchemyError as e:
            raise TransferDetectionError(f"failed to load transactions: {e}") from e
        return find_transfer_candidates(pool, today=ref)

    def link_transfer(self, transaction_a_id: str, transaction_b_id: str) -> str:
        """Link two transactions as the legs of one transfer; returns its id."""

        transfer_id = str(uuid.uuid4())
        with self._scope() as session:
            a = session.get(LiTransaction, transaction_a_id)
            b = session.get(LiTransaction, transaction_b_id)
            for tx_id, row in ((transaction_a_id, a), (transaction_b_id, b)):
                if row is None or row.deleted_at is not None:
                    raise LookupError(f"unknown transaction: {tx_id}")
                if row.transfer_id is not None:
                    raise ValueError(f"transaction {tx_id} is already part of a transfer")
            assert a is not None and b is not None
            if a.account_id == b.account_id:
                raise ValueError("a transfer must span two different accounts")
            a.transfer_id = b.transfer_id = transfer_id
            a.transfer_account_id = b.account_id
            b.transfer_account_id = a.account_id
        _log.info("Linked transfer %s: %s <-> %s", transfer_id, transaction_a_id, transaction_b_id)
        return transfer_id

    def unlink_transfer(self, transaction_id: str) -> int:
        """Clear the transfer ``transaction_id`` belongs to; returns rows updated.

        Every leg sharing the row's ``transfer_id`` is cleared. An unknown or
        unlinked transaction clears nothing.
        """

        with self._scope() as session:
            row = session.get(LiTransaction, transaction_id)
            if row is None or row.transfer_id is None:
                return 0
            rows = session.scalars(
                select(LiTransaction).where(LiTransaction.transfer_id == row.transfer_id)
            ).all()
            for leg in rows:
                leg.transfer_id = None
                leg.transfer_account_id = None
            return len(rows)


# ---------------------------------------------------------------------------
# Query helpers
# ---------------------------------------------------------------------------


def _is_duplicate(session: Session, account_id: str, item: ImportPayloadItem) -> bool:
    payee_clause = (
        LiTransaction.payee.is_(None) if item.payee is None else LiTransaction.payee == item.payee
    )
    stmt = (
        select(LiTransaction.id)
        .where(
            LiTransaction.account_id == account_id,
            LiTransaction.date == item.date,
            LiTransaction.amount == item.amount,
            LiTransaction.deleted_at.is_(None),
            payee_clause,
        )
        .limit(1)
    )
    return session.execute(stmt).first() is not None


def _categorize_from_history(session: Session, rows: list[LiTransaction], batch_id: str) -> int:
    count = 0
    for row in rows:
        if row.category_id is not None or not row.payee:
            continue
        previous = session.execute(
            select(LiTransaction.category_id)
            .where(
                func.lower(LiTransaction.payee) == row.payee.lower(),
                LiTransaction.category_id.is_not(None),
                LiTransaction.deleted_at.is_(None),
                LiTransaction.import_batch_id.is_distinct_from(batch_id),
            )
            .order_by(LiTransaction.date.desc(), LiTransaction.created_at.desc())
            .limit(1)
        ).scalar_one_or_none()
        if previous is not None:
            row.category_id = previous
            count += 1
    return count


def _account_total(session: Session, account_id: str) -> int:
    total = session.execute(
        select(func.coalesce(func.sum(LiTransaction.amount), 0)).where(
            LiTransaction.account_id == account_id,
            LiTransaction.deleted_at.is_(None),
        )
    ).scalar_one()
    return int(total)


__all__ = ["DEFAULT_IMPORT_SOURCE", "SqlLedgerBackend"]
