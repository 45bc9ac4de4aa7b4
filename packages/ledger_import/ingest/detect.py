"""Statement format detection.

The file extension picks the first parser to try:

- ``.pdf``: PDF heuristics. A PDF that yields no transactions (or cannot be
  read) is rejected outright; it is never retried as CSV.
- ``.txt``: the fixed-format text export. When that finds nothing, the file is
  retried as CSV since many banks ship delimited data with a ``.txt`` name.
- anything else: CSV, together with a proposed column mapping.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path

from ..errors import FormatDetectionError, ParseError
from ..logging_setup import get_logger
from ..mapping import FrozenColumnMapping, MappingGuess, guess_column_mapping
from ..models import FormatPreview, StatementFormat
from .parsers import (
    CsvStatementParser,
    FixedTextStatementParser,
    PdfStatementParser,
    StatementParser,
    StatementPath,
)

NO_PDF_TRANSACTIONS = "No transactions found in PDF. Try exporting as CSV from your bank."

_log = get_logger("ledger_import.ingest.detect")


@dataclass(frozen=True, slots=True)
class DetectedStatement:
    """A file with its detected format, preview and (CSV only) mapping guess."""

    path: Path
    preview: FormatPreview
    mapping_guess: MappingGuess | None = None

    @property
    def format(self) -> StatementFormat:
        return self.preview.format


def _detect_csv(path: Path) -> DetectedStatement:
    try:
        preview = CsvStatementParser().preview(path)
    except ParseError as exc:
        raise FormatDetectionError(str(exc)) from exc
    if not preview.headers:
        raise FormatDetectionError(f"{path.name} is empty or has no header row")
    if preview.total_rows == 0:
        raise FormatDetectionError(f"{path.name} has a header row but no data rows")
    return DetectedStatement(
        path=path, preview=preview, mapping_guess=guess_column_mapping(preview.headers)
    )


def _detect_pdf(path: Path, cancel: threading.Event | None) -> DetectedStatement:
    try:
        preview = PdfStatementParser(cancel).preview(path)
    except ParseError as exc:
        raise FormatDetectionError(str(exc)) from exc
    if preview.total_rows == 0:
        raise FormatDetectionError(NO_PDF_TRANSACTIONS)
    return DetectedStatement(path=path, preview=preview)


def _detect_fixed_text(path: Path) -> DetectedStatement | None:
    try:
        preview = FixedTextStatementParser().preview(path)
    except ParseError as exc:
        _log.info("Fixed-text parse of %s failed (%s); trying CSV", path.name, exc)
        return None
    if preview.total_rows == 0:
        _log.info("No fixed-text transactions in %s; trying CSV", path.name)
        return None
    return DetectedStatement(path=path, preview=preview)


def detect_statement(
    path: StatementPath, *, cancel: threading.Event | None = None
) -> DetectedStatement:
    """Detect the format of ``path`` and build its preview.

    Raises
    ------
    FormatDetectionError
        When no format produces a usable preview.
    ImportCancelled
        When ``cancel`` is set during PDF text extraction.
    """

    p = Path(path)
    suffix = p.suffix.lower()
    if suffix == ".pdf":
        detected = _detect_pdf(p, cancel)
    elif suffix == ".txt":
        detected = _detect_fixed_text(p) or _detect_csv(p)
    else:
        detected = _detect_csv(p)
    _log.info(
        "Detected %s as %s (%d rows)", p.name, detected.format, detected.preview.total_rows
    )
    return detected


def parser_for(
    detected: DetectedStatement,
    *,
    mapping: FrozenColumnMapping | None = None,
    cancel: threading.Event | None = None,
) -> StatementParser:
    """Return the parser matching a detected statement."""

    match detected.format:
        case StatementFormat.PDF:
            return PdfStatementParser(cancel)
        case StatementFormat.FIXED_TEXT:
            return FixedTextStatementParser()
        case _:
            return CsvStatementParser(mapping)


__all__ = ["NO_PDF_TRANSACTIONS", "DetectedStatement", "detect_statement", "parser_for"]
