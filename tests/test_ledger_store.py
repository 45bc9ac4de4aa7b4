from datetime import date
from pathlib import Path

import pytest
from db.client import get_engine, session_scope
from db.models.ledger import LiTransaction
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ledger_import.committer import LedgerBackend
from ledger_import.errors import TransferDetectionError
from ledger_import.ledger_store import SqlLedgerBackend
from ledger_import.models import ImportPayloadItem
from tests.helpers.db import (
    bootstrap_sqlite_db,
    insert_transaction,
    seed_accounts,
    seed_categories,
)


@pytest.fixture()
def db_url(tmp_path: Path) -> str:
    return bootstrap_sqlite_db(tmp_path / "ledger.db")


@pytest.fixture()
def backend(db_url: str) -> SqlLedgerBackend:
    return SqlLedgerBackend(db_url)


def _item(d: str, amount: int, payee: str | None = None, **kw) -> ImportPayloadItem:
    return ImportPayloadItem(date=d, amount=amount, payee=payee, **kw)


def test_backend_satisfies_protocol(backend: SqlLedgerBackend):
    assert isinstance(backend, LedgerBackend)


def test_requires_database_url():
    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        SqlLedgerBackend()


def test_database_url_from_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    url = bootstrap_sqlite_db(tmp_path / "env.db")
    monkeypatch.setenv("DATABASE_URL", url)
    backend = SqlLedgerBackend()
    backend.create_account("Checking")
    assert [a.name for a in SqlLedgerBackend(url).list_accounts()] == ["Checking"]


def test_accounts_crud(backend: SqlLedgerBackend):
    created = backend.create_account("  Savings ", "savings")
    backend.create_account("Checking")
    assert [a.name for a in backend.list_accounts()] == ["Checking", "Savings"]
    assert backend.find_account(created.id) == created
    assert backend.find_account("savings") == created
    assert backend.find_account("nope") is None
    with pytest.raises(ValueError):
        backend.create_account("   ")
    with pytest.raises(IntegrityError):
        backend.create_account("Checking")


def test_import_counts_duplicates_and_balance(backend: SqlLedgerBackend):
    acct = backend.create_account("Checking")
    first = backend.import_transactions(
        acct.id, [_item("2025-01-02", 250000, "Payroll"), _item("2025-01-03", -450, "Coffee")]
    )
    assert (first.imported, first.skipped) == (2, 0)
    assert first.batch_id

    second = backend.import_transactions(
        acct.id,
        [
            _item("2025-01-03", -450, "Coffee"),
            _item("2025-01-04", -1200, None),
            _item("2025-01-04", -1200, None),
        ],
    )
    assert (second.imported, second.skipped) == (1, 2)
    assert second.batch_id != first.batch_id
    [account] = backend.list_accounts()
    assert account.balance == 250000 - 450 - 1200


def test_import_into_unknown_account(backend: SqlLedgerBackend):
    with pytest.raises(LookupError):
        backend.import_transactions("missing", [_item("2025-01-02", 1)])


def test_pdf_category_resolves_by_name(backend: SqlLedgerBackend, db_url: str):
    cats = seed_categories(database_url=db_url, names=["Groceries"])
    acct = backend.create_account("Card")
    backend.import_transactions(
        acct.id,
        [
            _item("2025-01-05", -5431, "TRADER JOES", pdf_category="groceries"),
            _item("2025-01-06", -999, "UNKNOWN", pdf_category="Widgets"),
        ],
    )
    rows = {t.payee: t for t in backend.list_transactions(acct.id)}
    assert rows["TRADER JOES"].category_id == cats["Groceries"]
    assert rows["UNKNOWN"].category_id is None


def test_categorizes_from_payee_history(backend: SqlLedgerBackend, db_url: str):
    cats = seed_categories(database_url=db_url, names=["Coffee"])
    acct = backend.create_account("Checking")
    insert_transaction(
        database_url=db_url,
        account_id=acct.id,
        date="2024-12-01",
        amount=-400,
        payee="Blue Bottle",
        category_id=cats["Coffee"],
        import_batch_id="older",
    )
    counts = backend.import_transactions(
        acct.id, [_item("2025-01-03", -450, "BLUE BOTTLE"), _item("2025-01-04", -300, "Tea")]
    )
    assert counts.categorized == 1
    rows = {t.payee: t for t in backend.list_transactions(acct.id)}
    assert rows["BLUE BOTTLE"].category_id == cats["Coffee"]
    assert rows["Tea"].category_id is None


def test_imported_rows_carry_source_and_status(backend: SqlLedgerBackend, db_url: str):
    acct = backend.create_account("Checking")
    counts = backend.import_transactions(acct.id, [_item("2025-01-03", -450, "Coffee", memo="m")])
    with session_scope(database_url=db_url) as s:
        row = s.scalars(select(LiTransaction)).one()
        assert row.status == "cleared"
        assert row.import_source == "file_import"
        assert row.import_batch_id == counts.batch_id
        assert row.original_payee == "Coffee"
        assert row.memo == "m"


def test_detect_link_and_unlink(backend: SqlLedgerBackend, db_url: str):
    ids = seed_accounts(database_url=db_url, names=["Checking", "Savings"])
    out_id = insert_transaction(
        database_url=db_url,
        account_id=ids["Checking"],
        date="2025-03-10",
        amount=-50000,
        payee="Transfer to SAV",
    )
    in_id = insert_transaction(
        database_url=db_url,
        account_id=ids["Savings"],
        date="2025-03-11",
        amount=50000,
        payee="Transfer from CHK",
    )
    insert_transaction(
        database_url=db_url,
        account_id=ids["Savings"],
        date="2024-06-01",
        amount=50000,
        payee="Transfer from CHK",
    )

    [candidate] = backend.detect_transfers(today=date(2025, 3, 31))
    assert {candidate.transaction_a.id, candidate.transaction_b.id} == {out_id, in_id}

    transfer_id = backend.link_transfer(out_id, in_id)
    rows = {t.id: t for t in backend.list_transactions()}
    assert rows[out_id].transfer_id == rows[in_id].transfer_id == transfer_id
    assert rows[out_id].transfer_account_id == ids["Savings"]
    assert rows[in_id].transfer_account_id == ids["Checking"]
    assert backend.detect_transfers(today=date(2025, 3, 31)) == []

    with pytest.raises(ValueError, match="already part of a transfer"):
        backend.link_transfer(out_id, in_id)

    # Unlinking goes by either leg's transaction id, never the link id.
    assert backend.unlink_transfer(transfer_id) == 0
    assert backend.unlink_transfer(in_id) == 2
    rows = {t.id: t for t in backend.list_transactions()}
    assert rows[out_id].transfer_id is None and rows[in_id].transfer_id is None
    assert rows[out_id].transfer_account_id is None
    assert backend.unlink_transfer(out_id) == 0
    assert backend.unlink_transfer("missing") == 0
    assert len(backend.detect_transfers(today=date(2025, 3, 31))) == 1


def test_link_transfer_validation(backend: SqlLedgerBackend, db_url: str):
    ids = seed_accounts(database_url=db_url, names=["Checking"])
    a = insert_transaction(
        database_url=db_url, account_id=ids["Checking"], date="2025-03-10", amount=-5
    )
    b = insert_transaction(
        database_url=db_url, account_id=ids["Checking"], date="2025-03-10", amount=5
    )
    with pytest.raises(ValueError, match="different accounts"):
        backend.link_transfer(a, b)
    with pytest.raises(LookupError):
        backend.link_transfer(a, "missing")


def test_detect_transfers_wraps_database_errors(db_url: str):
    backend = SqlLedgerBackend(db_url)
    LiTransaction.__table__.drop(bind=get_engine(database_url=db_url))
    with pytest.raises(TransferDetectionError):
        backend.detect_transfers(today=date(2025, 3, 31))
