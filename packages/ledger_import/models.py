"""Data types shared by the import pipeline.

Value types are frozen ``dataclass`` instances; records that cross the ledger
boundary (import payload items and the counts the ledger reports back) are
validated pydantic models.

Amounts are signed integers in minor units (cents). After parsing, the sign
convention is always income-positive / expense-negative regardless of the
source format.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field

LOW_CONFIDENCE_THRESHOLD = 0.7


class StatementFormat(StrEnum):
    CSV = "csv"
    FIXED_TEXT = "fixed_text"
    PDF = "pdf"


# ---------------------------------------------------------------------------
# Parsed statement rows
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ParsedTransaction:
    """One canonical transaction produced by a statement parser.

    ``date`` is ISO ``YYYY-MM-DD``. ``raw_data`` keeps the source CSV row keyed
    by header for display; it is empty for text and PDF statements and does not
    take part in equality.
    """

    date: str
    amount: int
    payee: str | None = None
    memo: str | None = None
    category_hint: str | None = None
    raw_data: Mapping[str, str] = field(default_factory=dict, compare=False)


@dataclass(frozen=True, slots=True)
class StatementLine:
    """A transaction line as recognised in a text or PDF statement."""

    date: str
    description: str
    amount: int
    running_balance: int | None = None
    raw_line: str | None = None
    category: str | None = None

    def to_transaction(self) -> ParsedTransaction:
        # Text statements carry a single free-form column; it serves as both.
        return ParsedTransaction(
            date=self.date,
            amount=self.amount,
            payee=self.description,
            memo=self.description,
            category_hint=self.category,
        )


# ---------------------------------------------------------------------------
# Previews (one variant per source format)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CsvPreview:
    format: ClassVar[StatementFormat] = StatementFormat.CSV

    headers: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...]
    total_rows: int


@dataclass(frozen=True, slots=True)
class FixedTextPreview:
    format: ClassVar[StatementFormat] = StatementFormat.FIXED_TEXT

    transactions: tuple[StatementLine, ...]
    total_rows: int
    beginning_balance: int | None = None
    ending_balance: int | None = None


@dataclass(frozen=True, slots=True)
class PdfPreview:
    """Preview of a PDF statement.

    ``confidence`` is the share of date-led candidate lines that parsed into a
    transaction. Below ``LOW_CONFIDENCE_THRESHOLD`` the preview is still
    usable but should be reviewed carefully.
    """

    format: ClassVar[StatementFormat] = StatementFormat.PDF

    transactions: tuple[StatementLine, ...]
    total_rows: int
    detected_format: str | None = None
    detected_columns: tuple[str, ...] = ()
    raw_text_sample: str = ""
    confidence: float = 0.0

    @property
    def low_confidence(self) -> bool:
        return self.confidence < LOW_CONFIDENCE_THRESHOLD

    @property
    def confidence_warning(self) -> str | None:
        if not self.low_confidence:
            return None
        pct = round(self.confidence * 100)
        return f"Low parsing confidence ({pct}%). Please review transactions carefully."


type FormatPreview = CsvPreview | FixedTextPreview | PdfPreview


# ---------------------------------------------------------------------------
# Ledger records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Account:
    id: str
    name: str
    account_type: str = "checking"
    balance: int = 0


@dataclass(frozen=True, slots=True)
class Category:
    id: str
    name: str


@dataclass(frozen=True, slots=True)
class LedgerTransaction:
    """A transaction as stored by the ledger (read side)."""

    id: str
    account_id: str
    date: str
    amount: int
    payee: str | None = None
    memo: str | None = None
    category_id: str | None = None
    transfer_id: str | None = None
    transfer_account_id: str | None = None


@dataclass(frozen=True, slots=True)
class TransferCandidate:
    """Two ledger transactions that look like both legs of one transfer."""

    transaction_a: LedgerTransaction
    transaction_b: LedgerTransaction
    confidence: float


# ---------------------------------------------------------------------------
# Import boundary DTOs
# ---------------------------------------------------------------------------


class ImportPayloadItem(BaseModel):
    """One selected transaction as handed to the ledger for import."""

    model_config = ConfigDict(strict=True, extra="forbid", frozen=True)

    date: str
    amount: int
    payee: str | None = None
    memo: str | None = None
    pdf_category: str | None = None


class ImportCounts(BaseModel):
    """Counts reported by the ledger after an import batch."""

    model_config = ConfigDict(strict=True, extra="ignore", frozen=True)

    imported: int = Field(ge=0)
    skipped: int = Field(default=0, ge=0)
    categorized: int = Field(default=0, ge=0)
    batch_id: str | None = None


@dataclass(frozen=True, slots=True)
class ImportResult:
    """Outcome of a completed import, including transfers linked afterwards."""

    imported: int
    skipped: int
    categorized: int = 0
    transfers_linked: int = 0

    @classmethod
    def from_counts(cls, counts: ImportCounts) -> ImportResult:
        return cls(
            imported=counts.imported,
            skipped=counts.skipped,
            categorized=counts.categorized,
        )

    def with_transfer_linked(self) -> ImportResult:
        return replace(self, transfers_linked=self.transfers_linked + 1)


__all__ = [
    "LOW_CONFIDENCE_THRESHOLD",
    "StatementFormat",
    "ParsedTransaction",
    "StatementLine",
    "CsvPreview",
    "FixedTextPreview",
    "PdfPreview",
    "FormatPreview",
    "Account",
    "Category",
    "LedgerTransaction",
    "TransferCandidate",
    "ImportPayloadItem",
    "ImportCounts",
    "ImportResult",
]
