from datetime import date, timedelta
from pathlib import Path

import pytest
from typer.testing import CliRunner

import ledger_import.cli as cli_mod
from ledger_import.cli import app
from tests.helpers.db import bootstrap_sqlite_db, insert_transaction, seed_accounts

runner = CliRunner()

CSV_TEXT = (
    "Date,Description,Debit,Credit\n"
    "2024-01-05,Paycheck,,2500.00\n"
    "2024-01-06,Coffee Shop,4.50,\n"
)


@pytest.fixture(autouse=True)
def _quiet_cli(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    # Keep a developer's .env out of the run and skip handler setup.
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli_mod, "configure_logging", lambda: None)


@pytest.fixture()
def db_url(tmp_path: Path) -> str:
    return bootstrap_sqlite_db(tmp_path / "cli.db")


@pytest.fixture()
def statement(tmp_path: Path) -> Path:
    p = tmp_path / "stmt.csv"
    p.write_text(CSV_TEXT, encoding="utf-8")
    return p


def test_preview_csv(statement: Path):
    result = runner.invoke(app, ["preview", "--file", str(statement)])
    assert result.exit_code == 0, result.output
    assert "Format:  csv" in result.output
    assert "Rows:    2" in result.output
    assert "(debit/credit)" in result.output


def test_preview_rejects_empty_csv(tmp_path: Path):
    p = tmp_path / "empty.csv"
    p.write_text("Date,Amount\n", encoding="utf-8")
    result = runner.invoke(app, ["preview", "--file", str(p)])
    assert result.exit_code == 1
    assert "Error:" in result.output


def test_add_account_and_list(db_url: str):
    result = runner.invoke(
        app, ["add-account", "Checking", "--type", "checking", "--database-url", db_url]
    )
    assert result.exit_code == 0, result.output
    result = runner.invoke(app, ["accounts", "--database-url", db_url])
    assert result.exit_code == 0
    assert "Checking\tchecking\t$0.00" in result.output


def test_import_non_interactive(db_url: str, statement: Path):
    seed_accounts(database_url=db_url, names=["Checking"])
    args = ["import", "--file", str(statement), "--account", "checking", "--yes"]
    result = runner.invoke(app, [*args, "--database-url", db_url])
    assert result.exit_code == 0, result.output
    assert "Parsed 2 transaction(s), selected total $2,495.50." in result.output
    assert "Imported 2, skipped 0 duplicate(s)" in result.output

    again = runner.invoke(app, [*args, "--database-url", db_url])
    assert again.exit_code == 0, again.output
    assert "Imported 0, skipped 2 duplicate(s)" in again.output

    listing = runner.invoke(app, ["accounts", "--database-url", db_url])
    assert "$2,495.50" in listing.output


def test_import_single_column_override_fails_cleanly(db_url: str, statement: Path):
    seed_accounts(database_url=db_url, names=["Checking"])
    result = runner.invoke(
        app,
        [
            "import",
            "--file",
            str(statement),
            "--account",
            "Checking",
            "--columns",
            "single",
            "--yes",
            "--database-url",
            db_url,
        ],
    )
    # Column 1 ("Description") is not an amount in single-column mode.
    assert result.exit_code == 1
    assert "Error: Line 2" in result.output


def test_import_unknown_account(db_url: str, statement: Path):
    result = runner.invoke(
        app,
        ["import", "--file", str(statement), "--account", "Nope", "--database-url", db_url],
    )
    assert result.exit_code == 1
    assert "Unknown account: Nope" in result.output


def test_import_yes_requires_account(db_url: str, statement: Path):
    seed_accounts(database_url=db_url, names=["Checking"])
    result = runner.invoke(
        app, ["import", "--file", str(statement), "--yes", "--database-url", db_url]
    )
    assert result.exit_code == 1
    assert "--account is required with --yes" in result.output


def test_import_without_database_url(statement: Path):
    result = runner.invoke(app, ["import", "--file", str(statement), "--yes"])
    assert result.exit_code == 1
    assert "DATABASE_URL" in result.output


def test_transfers_review_links_and_unlink(monkeypatch: pytest.MonkeyPatch, db_url: str):
    ids = seed_accounts(database_url=db_url, names=["Checking", "Savings"])
    day = (date.today() - timedelta(days=3)).isoformat()
    out_id = insert_transaction(
        database_url=db_url, account_id=ids["Checking"], date=day, amount=-10000, payee="Transfer"
    )
    in_id = insert_transaction(
        database_url=db_url, account_id=ids["Savings"], date=day, amount=10000, payee="Transfer"
    )
    asked = []

    def _confirm(candidate, *, account_names=None):
        asked.append(account_names)
        return True

    monkeypatch.setattr("ledger_import.term_ui.confirm_transfer", _confirm)
    result = runner.invoke(app, ["transfers", "--database-url", db_url])
    assert result.exit_code == 0, result.output
    assert "Linked 1 transfer(s)." in result.output
    linked_line = {f"Linked {out_id} <-> {in_id}", f"Linked {in_id} <-> {out_id}"}
    assert any(line in result.output for line in linked_line)
    assert set(asked[0].values()) == {"Checking", "Savings"}

    again = runner.invoke(app, ["transfers", "--database-url", db_url])
    assert "No transfer candidates found." in again.output

    # The id printed for either leg is enough to undo the link.
    unlinked = runner.invoke(app, ["unlink", in_id, "--database-url", db_url])
    assert unlinked.exit_code == 0
    assert "Unlinked 2 transaction(s)." in unlinked.output

    missing = runner.invoke(app, ["unlink", out_id, "--database-url", db_url])
    assert missing.exit_code == 1
    assert "is not part of a transfer" in missing.output

    relinked = runner.invoke(app, ["transfers", "--database-url", db_url])
    assert "Linked 1 transfer(s)." in relinked.output
