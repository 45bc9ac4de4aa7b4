"""Column mapping for delimited statements.

A :class:`ColumnMapping` is edited while the user reviews a CSV preview; it
validates every assignment. Parsing consumes a :class:`FrozenColumnMapping`
obtained from :meth:`ColumnMapping.resolve`, which also settles whether the
debit/credit pair or the single amount column is authoritative.

:func:`guess_column_mapping` proposes an initial mapping from the header row.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field

from .errors import ParseError

# Exact (lower-cased) header names recognised for each slot.
DATE_HEADERS = frozenset({"date", "posted", "trans date", "transaction date"})
AMOUNT_HEADERS = frozenset({"amount", "total", "value"})
DEBIT_HEADERS = frozenset({"debit", "withdrawal", "out"})
CREDIT_HEADERS = frozenset({"credit", "deposit", "in"})
PAYEE_HEADERS = frozenset({"payee", "description", "merchant", "name", "memo"})
MEMO_HEADERS = frozenset({"memo", "note", "notes", "reference"})


class _MappingFields(BaseModel):
    date_column: int = Field(default=0, ge=0)
    amount_column: int = Field(default=1, ge=0)
    debit_column: int | None = Field(default=None, ge=0)
    credit_column: int | None = Field(default=None, ge=0)
    payee_column: int | None = Field(default=None, ge=0)
    memo_column: int | None = Field(default=None, ge=0)
    category_column: int | None = Field(default=None, ge=0)
    # strftime syntax; empty means "try the common formats".
    date_format: str = ""
    invert_amounts: bool = False


class FrozenColumnMapping(_MappingFields):
    """Immutable mapping handed to the CSV parser."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def uses_separate_columns(self) -> bool:
        return self.debit_column is not None and self.credit_column is not None


class ColumnMapping(_MappingFields):
    """Editable mapping from CSV column positions to transaction fields."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    def resolve(self, use_separate_columns: bool) -> FrozenColumnMapping:
        """Freeze the mapping for parsing.

        In single-column mode the debit/credit slots are cleared so the amount
        column wins; in separate mode both of them are required.
        """

        data = self.model_dump()
        if use_separate_columns:
            if self.debit_column is None or self.credit_column is None:
                raise ParseError(
                    "Separate debit/credit mode requires both a debit and a credit column"
                )
        else:
            data["debit_column"] = None
            data["credit_column"] = None
        return FrozenColumnMapping(**data)


@dataclass(frozen=True, slots=True)
class MappingGuess:
    mapping: ColumnMapping
    use_separate_columns: bool


def _find(headers: Sequence[str], names: frozenset[str]) -> int | None:
    for i, header in enumerate(headers):
        if header in names:
            return i
    return None


def guess_column_mapping(headers: Sequence[str]) -> MappingGuess:
    """Propose a column mapping from a CSV header row.

    Headers are compared lower-cased and trimmed, by exact membership in the
    per-slot name sets; the first matching column wins. When no date or
    amount column is recognised the mapping falls back to positions 0 and 1.
    Separate debit/credit mode is proposed only when both columns exist.
    """

    normalized = [h.strip().lower() for h in headers]

    date_idx = _find(normalized, DATE_HEADERS)
    amount_idx = _find(normalized, AMOUNT_HEADERS)
    debit_idx = _find(normalized, DEBIT_HEADERS)
    credit_idx = _find(normalized, CREDIT_HEADERS)

    mapping = ColumnMapping(
        date_column=date_idx if date_idx is not None else 0,
        amount_column=amount_idx if amount_idx is not None else 1,
        debit_column=debit_idx,
        credit_column=credit_idx,
        payee_column=_find(normalized, PAYEE_HEADERS),
        memo_column=_find(normalized, MEMO_HEADERS),
        invert_amounts=False,
    )
    return MappingGuess(
        mapping=mapping,
        use_separate_columns=debit_idx is not None and credit_idx is not None,
    )


__all__ = [
    "ColumnMapping",
    "FrozenColumnMapping",
    "MappingGuess",
    "guess_column_mapping",
]
