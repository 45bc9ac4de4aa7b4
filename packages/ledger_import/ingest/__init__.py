"""Statement readers (CSV, fixed-format text, PDF) and format detection."""

from .detect import DetectedStatement, detect_statement
from .parsers import (
    CsvStatementParser,
    FixedTextStatementParser,
    PdfStatementParser,
    StatementParser,
)

__all__ = [
    "CsvStatementParser",
    "DetectedStatement",
    "FixedTextStatementParser",
    "PdfStatementParser",
    "StatementParser",
    "detect_statement",
]
