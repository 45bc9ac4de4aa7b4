# ruff: noqa: I001
"""CLI for the ``ledger_import`` package.

Command handlers (``cmd_*``) return a process exit code and are callable
without Typer; the Typer app below only parses options. Environment variables
(notably ``DATABASE_URL``) are loaded from a local ``.env`` via
``python-dotenv`` before any command runs. Import logic lives in
``ledger_import.wizard`` and the modules it drives.
"""

from __future__ import annotations

import sys
from enum import StrEnum
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .logging_setup import configure_logging


# ---- Output helpers ------------------------------------------------------------


def _err(msg: str) -> None:
    print(f"Error: {msg}", file=sys.stderr)


def _print_preview(detected) -> None:
    """Print a short, format-specific summary of a detected statement."""

    from .models import CsvPreview, FixedTextPreview, PdfPreview
    from .term_ui import format_minor_units

    preview = detected.preview
    print(f"File:    {detected.path}")
    print(f"Format:  {detected.format}")
    print(f"Rows:    {preview.total_rows}")
    match preview:
        case CsvPreview(headers=headers, rows=rows):
            print("Columns: " + ", ".join(f"[{i}] {h}" for i, h in enumerate(headers)))
            for row in rows:
                print("  " + " | ".join(row))
            guess = detected.mapping_guess
            if guess is not None:
                m = guess.mapping
                mode = "debit/credit" if guess.use_separate_columns else "single amount"
                print(
                    f"Mapping: date={m.date_column} amount={m.amount_column} "
                    f"debit={m.debit_column} credit={m.credit_column} "
                    f"payee={m.payee_column} memo={m.memo_column} ({mode})"
                )
        case FixedTextPreview() | PdfPreview():
            if isinstance(preview, FixedTextPreview):
                if preview.beginning_balance is not None:
                    print(f"Beginning balance: {format_minor_units(preview.beginning_balance)}")
                if preview.ending_balance is not None:
                    print(f"Ending balance:    {format_minor_units(preview.ending_balance)}")
            if isinstance(preview, PdfPreview):
                print(f"Detected: {preview.detected_format or 'unknown'}")
                print(f"Confidence: {preview.confidence:.0%}")
            for line in preview.transactions:
                print(f"  {line.date}  {format_minor_units(line.amount):>12}  {line.description}")


def _print_result(result) -> None:
    print(
        f"Imported {result.imported}, skipped {result.skipped} duplicate(s), "
        f"auto-categorized {result.categorized}, linked {result.transfers_linked} transfer(s)."
    )


def _open_backend(database_url: str | None):
    from .ledger_store import SqlLedgerBackend

    return SqlLedgerBackend(database_url)


# ---- Command handlers ---------------------------------------------------------


def cmd_preview(file_path: str) -> int:
    from .errors import FormatDetectionError
    from .ingest.detect import detect_statement
    from .models import PdfPreview

    try:
        detected = detect_statement(file_path)
    except FormatDetectionError as e:
        _err(str(e))
        return 1
    _print_preview(detected)
    if isinstance(detected.preview, PdfPreview) and detected.preview.confidence_warning:
        print(f"Warning: {detected.preview.confidence_warning}", file=sys.stderr)
    return 0


def _choose_account(backend, account: str | None, *, interactive: bool):
    """Resolve ``--account`` or prompt for one; ``None`` when impossible."""

    if account:
        found = backend.find_account(account)
        if found is None:
            _err(f"Unknown account: {account}")
        return found
    accounts = backend.list_accounts()
    if not accounts:
        _err("No accounts exist yet; create one with `add-account` first.")
        return None
    if not interactive:
        _err("--account is required with --yes")
        return None

    from .term_ui import select_account

    name = select_account([a.name for a in accounts], default=accounts[0].name)
    return backend.find_account(name)


def _review_candidates(pending, accept, reject, account_names) -> None:
    """Ask about each candidate, calling ``accept``/``reject`` accordingly."""

    from .term_ui import confirm_transfer

    for candidate in list(pending()):
        # Accepting a pair drops other pairs sharing its transactions.
        if candidate not in pending():
            continue
        if confirm_transfer(candidate, account_names=account_names):
            accept(candidate)
            if candidate not in pending():
                a, b = candidate.transaction_a, candidate.transaction_b
                print(f"Linked {a.id} <-> {b.id}")
        else:
            reject(candidate)


def cmd_import(
    file_path: str,
    *,
    account: str | None = None,
    date_format: str | None = None,
    invert_amounts: bool = False,
    separate_columns: bool | None = None,
    database_url: str | None = None,
    assume_yes: bool = False,
) -> int:
    """Run the import wizard end to end against the SQL ledger."""

    from .wizard import ImportWizard, Step

    try:
        backend = _open_backend(database_url)
    except Exception as e:
        _err(f"cannot open ledger database: {e}")
        return 1

    wizard = ImportWizard(backend)
    try:
        wizard.select_file(file_path)
        if wizard.step != Step.MAPPING:
            _err(wizard.error or "could not read statement")
            return 1
        state = wizard.state
        _print_preview(state.detected)
        for warning in wizard.warnings:
            print(f"Warning: {warning}", file=sys.stderr)

        if state.mapping is not None:
            changes: dict[str, object] = {}
            if date_format:
                changes["date_format"] = date_format
            if invert_amounts:
                changes["invert_amounts"] = True
            if changes:
                wizard.update_mapping(**changes)
            if separate_columns is not None:
                wizard.set_use_separate_columns(separate_columns)

        target = _choose_account(backend, account, interactive=not assume_yes)
        if target is None:
            wizard.cancel()
            return 1
        wizard.set_account(target.id)

        wizard.parse()
        if wizard.step != Step.PREVIEW:
            _err(wizard.error or "could not parse statement")
            return 1

        from .term_ui import format_minor_units

        print(
            f"Parsed {len(wizard.state.transactions)} transaction(s), "
            f"selected total {format_minor_units(wizard.selected_total)}."
        )
        wizard.commit()
        if wizard.step == Step.PREVIEW:
            _err(wizard.error or "import failed")
            return 1

        if wizard.step == Step.TRANSFERS:
            if assume_yes:
                print(f"{len(wizard.pending_transfers)} possible transfer(s) left unlinked.")
            else:
                names = {a.id: a.name for a in backend.list_accounts()}
                _review_candidates(
                    lambda: wizard.pending_transfers,
                    wizard.accept_transfer,
                    wizard.reject_transfer,
                    names,
                )
                if wizard.error:
                    _err(wizard.error)
            wizard.finish_transfers()
    except KeyboardInterrupt:
        if wizard.step != Step.COMPLETE:
            wizard.cancel()
        print("Import cancelled.", file=sys.stderr)
        return 1

    assert wizard.result is not None
    _print_result(wizard.result)
    return 0


def cmd_accounts(database_url: str | None = None) -> int:
    from .term_ui import format_minor_units

    try:
        accounts = _open_backend(database_url).list_accounts()
    except Exception as e:
        _err(f"failed to list accounts: {e}")
        return 1
    for a in accounts:
        print(f"{a.id}\t{a.name}\t{a.account_type}\t{format_minor_units(a.balance)}")
    return 0


def cmd_add_account(name: str, account_type: str, database_url: str | None = None) -> int:
    try:
        created = _open_backend(database_url).create_account(name, account_type)
    except Exception as e:
        _err(f"failed to create account: {e}")
        return 1
    print(f"{created.id}\t{created.name}")
    return 0


def cmd_transfers(database_url: str | None = None) -> int:
    """Detect transfer candidates across the ledger and review them."""

    from .errors import TransferLinkError
    from .transfers import TransferReview

    try:
        backend = _open_backend(database_url)
        candidates = backend.detect_transfers()
    except Exception as e:
        _err(f"transfer detection failed: {e}")
        return 1
    if not candidates:
        print("No transfer candidates found.")
        return 0

    review = TransferReview.of(backend, candidates)
    names = {a.id: a.name for a in backend.list_accounts()}

    def _accept(candidate) -> None:
        try:
            review.accept(candidate)
        except TransferLinkError as e:
            _err(str(e))

    try:
        _review_candidates(lambda: review.pending, _accept, review.reject, names)
    except KeyboardInterrupt:
        print("Stopped.", file=sys.stderr)
    print(f"Linked {review.linked} transfer(s).")
    return 0


def cmd_unlink(transaction_id: str, database_url: str | None = None) -> int:
    try:
        cleared = _open_backend(database_url).unlink_transfer(transaction_id)
    except Exception as e:
        _err(f"failed to unlink transfer: {e}")
        return 1
    if cleared == 0:
        _err(f"Transaction {transaction_id} is not part of a transfer")
        return 1
    print(f"Unlinked {cleared} transaction(s).")
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import bank statements (CSV, Bank of America TXT, PDF) into a ledger and "
        "link transfers between accounts. Loads DATABASE_URL from a local .env."
    ),
)


class ColumnMode(StrEnum):
    AUTO = "auto"
    SEPARATE = "separate"
    SINGLE = "single"


_SEPARATE_COLUMNS: dict[ColumnMode, bool | None] = {
    ColumnMode.AUTO: None,
    ColumnMode.SEPARATE: True,
    ColumnMode.SINGLE: False,
}

# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults).
FILE_OPTION: OptionInfo = typer.Option(
    ...,
    "--file",
    help="Statement file (.csv, .txt or .pdf)",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handlers report missing files themselves
)
DATABASE_URL_OPTION: OptionInfo = typer.Option(
    None, "--database-url", help="Override DATABASE_URL (falls back to env var)."
)


@app.command("preview")
def preview_cmd(file_path: Annotated[Path, FILE_OPTION]) -> None:
    """Detect the statement format and show a preview."""

    raise typer.Exit(cmd_preview(str(file_path)))


@app.command("import")
def import_cmd(
    file_path: Annotated[Path, FILE_OPTION],
    *,
    account: str | None = typer.Option(None, help="Target account name or id."),
    date_format: str | None = typer.Option(
        None, help="strftime date format for CSV files (e.g. %d.%m.%Y)."
    ),
    invert_amounts: bool = typer.Option(
        False, help="Negate single-column CSV amounts (card exports with positive charges)."
    ),
    columns: ColumnMode = typer.Option(
        ColumnMode.AUTO,
        "--columns",
        case_sensitive=False,
        help="CSV amount layout: auto (guess), separate (debit/credit) or single.",
    ),
    database_url: str | None = DATABASE_URL_OPTION,
    yes: bool = typer.Option(False, "--yes", help="Do not prompt; leave transfers unlinked."),
) -> None:
    """Import a statement into an account, then review likely transfers."""

    raise typer.Exit(
        cmd_import(
            str(file_path),
            account=account,
            date_format=date_format,
            invert_amounts=invert_amounts,
            separate_columns=_SEPARATE_COLUMNS[columns],
            database_url=database_url,
            assume_yes=yes,
        )
    )


@app.command("accounts")
def accounts_cmd(database_url: str | None = DATABASE_URL_OPTION) -> None:
    """List accounts with their balances."""

    raise typer.Exit(cmd_accounts(database_url))


@app.command("add-account")
def add_account_cmd(
    name: str,
    *,
    account_type: str = typer.Option("checking", "--type", help="Account type label."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Create an account."""

    raise typer.Exit(cmd_add_account(name, account_type, database_url))


@app.command("transfers")
def transfers_cmd(database_url: str | None = DATABASE_URL_OPTION) -> None:
    """Find unlinked transfer pairs and confirm them one by one."""

    raise typer.Exit(cmd_transfers(database_url))


@app.command("unlink")
def unlink_cmd(
    transaction_id: str,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Remove the transfer link TRANSACTION_ID belongs to, from both legs."""

    raise typer.Exit(cmd_unlink(transaction_id, database_url))


@app.callback()
def _root() -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()


if __name__ == "__main__":  # pragma: no cover
    app()
