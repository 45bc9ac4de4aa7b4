"""Delimited (CSV) statement reader.

Parsing uses the stdlib :mod:`csv` module with flexible row lengths: short
rows read missing cells as empty, long rows keep their extra cells in
``raw_data`` only when a header names them. Blank rows are skipped.
"""

from __future__ import annotations

import csv
from collections.abc import Iterator, Sequence
from os import PathLike

from ..errors import ParseError
from ..logging_setup import get_logger
from ..mapping import FrozenColumnMapping
from ..models import CsvPreview, ParsedTransaction
from .amounts import parse_date, to_minor_units

PREVIEW_ROWS = 10

_log = get_logger("ledger_import.ingest.csv_statement")


def _iter_rows(path: str | PathLike[str]) -> Iterator[tuple[int, list[str]]]:
    """Yield ``(line_number, row)`` for every non-blank record, header first."""

    try:
        # utf-8-sig drops the BOM many bank exports start with.
        with open(path, encoding="utf-8-sig", newline="") as f:
            reader = csv.reader(f)
            for row in reader:
                if not any(cell.strip() for cell in row):
                    continue
                yield reader.line_num, row
    except csv.Error as exc:
        raise ParseError(f"Malformed CSV: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise ParseError(f"File is not UTF-8 text: {path}") from exc
    except OSError as exc:
        raise ParseError(f"Cannot read {path}: {exc.strerror or exc}") from exc


def _read(path: str | PathLike[str]) -> tuple[list[str], list[tuple[int, list[str]]]]:
    records = _iter_rows(path)
    header = next(records, None)
    if header is None:
        return [], []
    return [h.strip() for h in header[1]], list(records)


def preview_csv(path: str | PathLike[str], limit: int = PREVIEW_ROWS) -> CsvPreview:
    """Return the header row, the first ``limit`` data rows and the row count."""

    headers, rows = _read(path)
    return CsvPreview(
        headers=tuple(headers),
        rows=tuple(tuple(row) for _, row in rows[:limit]),
        total_rows=len(rows),
    )


def _cell(row: Sequence[str], index: int | None) -> str:
    if index is None or index >= len(row):
        return ""
    return row[index].strip()


def _optional(row: Sequence[str], index: int | None) -> str | None:
    return _cell(row, index) or None


def _row_amount(row: Sequence[str], mapping: FrozenColumnMapping) -> int:
    if mapping.uses_separate_columns:
        credit = to_minor_units(_cell(row, mapping.credit_column))
        debit = to_minor_units(_cell(row, mapping.debit_column))
        return credit - debit
    raw = to_minor_units(_cell(row, mapping.amount_column))
    return -raw if mapping.invert_amounts else raw


def parse_csv(path: str | PathLike[str], mapping: FrozenColumnMapping) -> list[ParsedTransaction]:
    """Apply ``mapping`` to every data row of the CSV at ``path``.

    Raises
    ------
    ParseError
        When the file cannot be read, or a row has an empty/unrecognised date
        or an amount that is not a number. The message names the line.
    """

    headers, rows = _read(path)
    out: list[ParsedTransaction] = []
    for line_no, row in rows:
        date_text = _cell(row, mapping.date_column)
        if not date_text:
            raise ParseError(f"Line {line_no}: missing date")
        try:
            date = parse_date(date_text, mapping.date_format)
            amount = _row_amount(row, mapping)
        except ValueError as exc:
            raise ParseError(f"Line {line_no}: {exc}") from exc

        out.append(
            ParsedTransaction(
                date=date,
                amount=amount,
                payee=_optional(row, mapping.payee_column),
                memo=_optional(row, mapping.memo_column),
                category_hint=_optional(row, mapping.category_column),
                raw_data=dict(zip(headers, row, strict=False)),
            )
        )

    _log.info("Parsed %d CSV rows from %s", len(out), path)
    return out


__all__ = ["PREVIEW_ROWS", "parse_csv", "preview_csv"]
