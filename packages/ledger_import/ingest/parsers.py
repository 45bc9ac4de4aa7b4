"""Common parser interface over the three statement formats."""

from __future__ import annotations

import threading
from os import PathLike
from typing import Protocol, runtime_checkable

from ..mapping import FrozenColumnMapping
from ..models import FormatPreview, ParsedTransaction
from . import csv_statement, fixed_text, pdf_statement

type StatementPath = str | PathLike[str]


@runtime_checkable
class StatementParser(Protocol):
    def preview(self, path: StatementPath) -> FormatPreview: ...

    def parse(self, path: StatementPath) -> list[ParsedTransaction]: ...


class CsvStatementParser:
    """CSV parser bound to a resolved column mapping.

    ``mapping`` may be ``None`` for preview-only use; parsing then raises.
    """

    def __init__(self, mapping: FrozenColumnMapping | None = None) -> None:
        self.mapping = mapping

    def preview(self, path: StatementPath) -> FormatPreview:
        return csv_statement.preview_csv(path)

    def parse(self, path: StatementPath) -> list[ParsedTransaction]:
        if self.mapping is None:
            raise ValueError("CsvStatementParser.parse() requires a column mapping")
        return csv_statement.parse_csv(path, self.mapping)


class FixedTextStatementParser:
    def preview(self, path: StatementPath) -> FormatPreview:
        return fixed_text.preview_fixed_text(path)

    def parse(self, path: StatementPath) -> list[ParsedTransaction]:
        return fixed_text.parse_fixed_text(path)


class PdfStatementParser:
    def __init__(self, cancel: threading.Event | None = None) -> None:
        self.cancel = cancel

    def preview(self, path: StatementPath) -> FormatPreview:
        return pdf_statement.preview_pdf(path, cancel=self.cancel)

    def parse(self, path: StatementPath) -> list[ParsedTransaction]:
        return pdf_statement.parse_pdf(path, cancel=self.cancel)


__all__ = [
    "CsvStatementParser",
    "FixedTextStatementParser",
    "PdfStatementParser",
    "StatementParser",
    "StatementPath",
]
