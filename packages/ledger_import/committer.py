"""Import commit: the ledger boundary and the payload handed across it.

The ledger itself (storage, duplicate detection, categorization) lives behind
:class:`LedgerBackend`. This module only turns the user's selection into an
ordered payload and maps backend failures to :class:`CommitError`.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from .errors import CommitError
from .logging_setup import get_logger
from .models import (
    Account,
    Category,
    ImportCounts,
    ImportPayloadItem,
    ParsedTransaction,
    TransferCandidate,
)
from .selection import SelectionSet

_log = get_logger("ledger_import.committer")


@runtime_checkable
class LedgerBackend(Protocol):
    """Operations the import flow needs from the ledger."""

    def list_accounts(self) -> list[Account]: ...

    def create_account(self, name: str, account_type: str = "checking") -> Account: ...

    def list_categories(self) -> list[Category]: ...

    def import_transactions(
        self, account_id: str, transactions: Sequence[ImportPayloadItem]
    ) -> ImportCounts: ...

    def detect_transfers(self) -> list[TransferCandidate]: ...

    def link_transfer(self, transaction_a_id: str, transaction_b_id: str) -> str: ...

    def unlink_transfer(self, transaction_id: str) -> int: ...


def build_import_payload(
    transactions: Sequence[ParsedTransaction], selection: SelectionSet
) -> list[ImportPayloadItem]:
    """Selected transactions, in original order, as ledger payload items.

    ``category_hint`` travels as ``pdf_category``; the ledger resolves it to one
    of its categories by name.
    """

    if selection.size != len(transactions):
        raise ValueError("selection does not belong to this transaction list")
    return [
        ImportPayloadItem(
            date=tx.date,
            amount=tx.amount,
            payee=tx.payee,
            memo=tx.memo,
            pdf_category=tx.category_hint,
        )
        for i, tx in enumerate(transactions)
        if i in selection
    ]


def commit_selection(
    backend: LedgerBackend,
    account_id: str,
    transactions: Sequence[ParsedTransaction],
    selection: SelectionSet,
) -> ImportCounts:
    """Import the selected transactions into ``account_id``.

    Raises
    ------
    CommitError
        When the payload is empty or the backend fails. Nothing is retried
        here; the caller may call again with the same selection.
    """

    payload = build_import_payload(transactions, selection)
    if not payload:
        raise CommitError("No transactions selected")
    try:
        counts = backend.import_transactions(account_id, payload)
        if not isinstance(counts, ImportCounts):
            # Backends may report plain mappings; validate them here.
            counts = ImportCounts.model_validate(counts)
    except Exception as exc:
        _log.warning("Import into account %s failed: %s", account_id, exc)
        raise CommitError(f"Import failed: {exc}") from exc
    _log.info(
        "Imported %d, skipped %d, categorized %d into account %s",
        counts.imported,
        counts.skipped,
        counts.categorized,
        account_id,
    )
    return counts


__all__ = ["LedgerBackend", "build_import_payload", "commit_selection"]
