"""PDF statement reader.

Text is pulled from the PDF's text layer with ``pdfplumber`` and then scanned
line by line with heuristics tuned for card and bank statements:

- transaction lines start with a date (``MM/DD/YY[YY]``, ``YYYY-MM-DD`` or
  ``MM-DD-YY[YY]``) and carry at least one two-decimal amount;
- table headers, section titles, category headings, summary and total rows
  and chart residue are recognised and skipped;
- a category heading (``Dining``, ``Groceries:``) tags the transactions below
  it with a category hint.

Signs follow the card-statement convention: an unsigned amount is a charge
(negative), ``-x``, ``(x)`` and ``x-`` are negative as well, and a ``CR``
suffix marks a credit (positive).

The heuristics run on plain text (:func:`parse_text`), so they can be used
and tested without a PDF file.
"""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass
from datetime import date
from os import PathLike

import pdfplumber

from ..errors import ImportCancelled, ParseError
from ..logging_setup import get_logger
from ..models import ParsedTransaction, PdfPreview, StatementLine
from .amounts import to_minor_units

PREVIEW_ROWS = 20
MIN_TEXT_CHARS = 100
RAW_SAMPLE_CHARS = 500
# Below this many transactions the scan is repeated without section tracking.
MIN_STRUCTURED_TRANSACTIONS = 3
# Largest plausible single amount, in cents.
MAX_ABS_AMOUNT = 1_000_000_000

IMAGE_PDF_MESSAGE = (
    "PDF appears to be image-based or contains very little text. "
    "Please export as CSV from your bank."
)

HEADER_KEYWORDS: tuple[str, ...] = (
    "date",
    "description",
    "amount",
    "balance",
    "debit",
    "credit",
    "withdrawal",
    "deposit",
    "transaction",
    "posted",
)

SUMMARY_KEYWORDS: tuple[str, ...] = (
    "total",
    "summary",
    "subtotal",
    "balance forward",
    "previous balance",
    "ending balance",
    "beginning balance",
    "opening balance",
    "closing balance",
    "average",
    "minimum",
    "maximum",
    "page",
    "continued",
    "spending",
    "income",
    "net",
    "cash flow",
    "overview",
    "breakdown",
)

CATEGORY_KEYWORDS: tuple[str, ...] = (
    "groceries",
    "dining",
    "restaurants",
    "shopping",
    "entertainment",
    "utilities",
    "bills",
    "transportation",
    "gas",
    "travel",
    "healthcare",
    "medical",
    "insurance",
    "education",
    "subscriptions",
    "personal",
    "home",
    "automotive",
    "clothing",
    "electronics",
    "gifts",
    "donations",
    "fees",
    "taxes",
    "income",
    "salary",
    "transfer",
    "payment",
)

SECTION_KEYWORDS: tuple[str, ...] = ("transaction", "activity", "details")

MONTH_ABBREVS: tuple[str, ...] = (
    "jan", "feb", "mar", "apr", "may", "jun",
    "jul", "aug", "sep", "oct", "nov", "dec",
)  # fmt: skip

MONTH_NAMES: tuple[str, ...] = (
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
)  # fmt: skip

# (pattern, field order) pairs; each pattern has three numeric groups.
_DATE_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{2,4})"), "mdy"),
    (re.compile(r"^(\d{4})-(\d{2})-(\d{2})"), "ymd"),
    (re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{2,4})"), "mdy"),
)
_AMOUNT_RE = re.compile(r"\$?[-(]?[\d,]{1,12}\.\d{2}[)\-]?(?:CR)?")
# Same shape without the trailing markers; finds where the description ends.
_AMOUNT_START_RE = re.compile(r"\$?[-(]?[\d,]{1,12}\.\d{2}")
_SUMMARY_RE = re.compile(r"\b(?:" + "|".join(re.escape(k) for k in SUMMARY_KEYWORDS) + r")\b")
_DOLLAR_ONLY_RE = re.compile(r"^\$[\d,]+\.\d{2}$")
_CHART_LABEL_RE = re.compile(r"^\d+\.?\d*\s+[A-Z]{3}$")
_CATEGORY_TOTAL_RE = re.compile(r"^[A-Za-z][A-Za-z\s/]+\$[\d,]+\.\d{2}$")
_NUMERIC_CHARS = frozenset("0123456789.,%$")
_WORD_RE = re.compile(r"[a-z]+")
_MONTH_WORDS = frozenset(MONTH_ABBREVS) | frozenset(MONTH_NAMES) | {"sept"}

_BANK_MARKERS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\bbank of america\b"), "Bank of America"),
    (re.compile(r"\bchase\b"), "Chase"),
    (re.compile(r"\bwells fargo\b"), "Wells Fargo"),
    (re.compile(r"\bciti(?:bank)?\b"), "Citi"),
)

_log = get_logger("ledger_import.ingest.pdf_statement")


# ---------------------------------------------------------------------------
# Token helpers
# ---------------------------------------------------------------------------


def parse_amount(token: str) -> int | None:
    """Convert a statement amount token to signed cents (card convention)."""

    cleaned = token.strip().replace(",", "").replace("$", "")
    if not cleaned:
        return None

    is_credit = cleaned.upper().endswith("CR")
    if is_credit:
        cleaned = cleaned[:-2]

    if cleaned.startswith("(") and cleaned.endswith(")"):
        cleaned = cleaned[1:-1]
    elif cleaned.startswith("-"):
        cleaned = cleaned[1:]
    elif cleaned.endswith("-"):
        cleaned = cleaned[:-1]

    try:
        cents = abs(to_minor_units(cleaned))
    except ValueError:
        return None
    return cents if is_credit else -cents


def match_date(line: str) -> tuple[str, int] | None:
    """Return ``(iso_date, end_offset)`` for a date at the start of ``line``."""

    for pattern, order in _DATE_PATTERNS:
        m = pattern.match(line)
        if m is None:
            continue
        a, b, c = (int(g) for g in m.groups())
        if order == "ymd":
            year, month, day = a, b, c
        else:
            month, day, year = a, b, c
            if year < 100:
                year += 2000
        try:
            return date(year, month, day).isoformat(), m.end()
        except ValueError:
            return None
    return None


def starts_with_date(line: str) -> bool:
    return any(pattern.match(line) for pattern, _ in _DATE_PATTERNS)


def _trailing_amounts(line: str) -> list[int]:
    amounts: list[int] = []
    # Only the last three matches matter: amount and optional balance.
    for m in _AMOUNT_RE.findall(line)[-3:]:
        value = parse_amount(m)
        if value is not None and abs(value) <= MAX_ABS_AMOUNT:
            amounts.append(value)
    return amounts


# ---------------------------------------------------------------------------
# Line classification
# ---------------------------------------------------------------------------


def is_header_line(line: str) -> bool:
    lower = line.lower()
    return sum(1 for k in HEADER_KEYWORDS if k in lower) >= 2


def is_section_start(line: str) -> bool:
    lower = line.lower()
    return any(k in lower for k in SECTION_KEYWORDS)


def category_heading(line: str) -> str | None:
    """Return the heading text when ``line`` is a bare category heading."""

    if starts_with_date(line) or _is_category_total(line.strip()):
        return None
    key = line.strip().lower().rstrip(":")
    for category in CATEGORY_KEYWORDS:
        if key == category or key.startswith(category + " "):
            return line.strip().rstrip(":")
    return None


def _is_month_table(lower: str) -> bool:
    words = _WORD_RE.findall(lower)
    return sum(1 for w in words if w in _MONTH_WORDS) >= 2


def _is_chart_noise(stripped: str) -> bool:
    if len(stripped) < 3:
        return True
    if _DOLLAR_ONLY_RE.match(stripped):
        return True
    if all(c in _NUMERIC_CHARS or c.isspace() for c in stripped):
        if "." not in stripped or len(stripped) < 4:
            return True
    if _CHART_LABEL_RE.match(stripped):
        return True
    lower = stripped.lower()
    if any(lower in (m, m + ".") for m in MONTH_ABBREVS):
        return True
    for month in MONTH_NAMES:
        if lower == month or (lower.startswith(month) and "$" in lower):
            return True
    return False


def _is_category_total(stripped: str) -> bool:
    if "$" not in stripped or starts_with_date(stripped):
        return False
    return _CATEGORY_TOTAL_RE.match(stripped) is not None


def should_skip(line: str) -> bool:
    """True for summary rows, totals, headings and chart residue."""

    stripped = line.strip()
    lower = stripped.lower()
    return (
        _SUMMARY_RE.search(lower) is not None
        or _is_month_table(lower)
        or category_heading(stripped) is not None
        or _is_chart_noise(stripped)
        or _is_category_total(stripped)
        or lower.startswith(("quarterly", "annual"))
    )


def parse_line(line: str, category: str | None = None) -> StatementLine | None:
    """Parse one date-led line into a :class:`StatementLine`."""

    stripped = line.strip()
    found = match_date(stripped)
    if found is None:
        return None
    iso, date_end = found

    amounts = _trailing_amounts(stripped)
    if not amounts:
        return None
    amount = amounts[0]
    balance = amounts[-1] if len(amounts) >= 2 else None

    after_date = stripped[date_end:]
    first = _AMOUNT_START_RE.search(after_date)
    description = (after_date[: first.start()] if first else after_date).strip()
    if len(description) < 2:
        return None

    return StatementLine(
        date=iso,
        description=description,
        amount=amount,
        running_balance=balance,
        raw_line=line,
        category=category,
    )


# ---------------------------------------------------------------------------
# Statement scan
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class _Scan:
    lines: list[StatementLine]
    valid: int = 0
    candidates: int = 0


def _scan(text_lines: list[str], *, structured: bool) -> _Scan:
    scan = _Scan(lines=[])
    in_section = False
    past_summary = False
    category: str | None = None

    for raw in text_lines:
        stripped = raw.strip()
        if not stripped:
            continue
        dated = starts_with_date(stripped)

        if structured and not dated:
            if is_section_start(stripped):
                in_section = True
                past_summary = True
                continue
            if is_header_line(stripped):
                past_summary = True
                continue

        heading = category_heading(stripped)
        if heading is not None:
            category = heading
            continue
        if should_skip(stripped) or not dated:
            continue

        scan.candidates += 1
        parsed = parse_line(stripped, category)
        if parsed is None:
            continue
        scan.valid += 1
        if not structured or past_summary or in_section or not scan.lines:
            scan.lines.append(parsed)
    return scan


def detect_layout(text: str) -> tuple[str | None, tuple[str, ...]]:
    """Return ``(bank_name, header_columns)`` from the first table header."""

    lower_text = text.lower()
    for line in text.splitlines():
        if starts_with_date(line.strip()) or not is_header_line(line):
            continue
        lower = line.lower()
        columns = tuple(k for k in HEADER_KEYWORDS if k in lower)
        bank = next(
            (name for marker, name in _BANK_MARKERS if marker.search(lower_text)), "Generic"
        )
        return bank, columns
    return None, ()


def parse_text(text: str, limit: int | None = PREVIEW_ROWS) -> PdfPreview:
    """Run the statement heuristics over extracted ``text``.

    Raises
    ------
    ParseError
        When the text is too short to be a text-layer statement.
    """

    if len(text.strip()) < MIN_TEXT_CHARS:
        raise ParseError(IMAGE_PDF_MESSAGE)

    detected_format, detected_columns = detect_layout(text)
    text_lines = text.splitlines()

    scan = _scan(text_lines, structured=True)
    if len(scan.lines) < MIN_STRUCTURED_TRANSACTIONS:
        _log.debug("Only %d structured rows; rescanning without sections", len(scan.lines))
        scan = _scan(text_lines, structured=False)

    confidence = scan.valid / scan.candidates if scan.candidates else 0.0
    sample = scan.lines if limit is None else scan.lines[:limit]
    return PdfPreview(
        transactions=tuple(sample),
        total_rows=len(scan.lines),
        detected_format=detected_format,
        detected_columns=detected_columns,
        raw_text_sample=text[:RAW_SAMPLE_CHARS],
        confidence=confidence,
    )


# ---------------------------------------------------------------------------
# File entry points
# ---------------------------------------------------------------------------


def extract_text(path: str | PathLike[str], cancel: threading.Event | None = None) -> str:
    """Concatenate the text layer of every page, checking ``cancel`` per page."""

    parts: list[str] = []
    try:
        with pdfplumber.open(path) as pdf:
            for page in pdf.pages:
                if cancel is not None and cancel.is_set():
                    raise ImportCancelled("PDF extraction cancelled")
                parts.append(page.extract_text() or "")
    except ImportCancelled:
        raise
    except Exception as exc:
        raise ParseError(f"Failed to open PDF: {exc}") from exc
    return "\n".join(parts)


def preview_pdf(
    path: str | PathLike[str],
    limit: int = PREVIEW_ROWS,
    *,
    cancel: threading.Event | None = None,
) -> PdfPreview:
    preview = parse_text(extract_text(path, cancel), limit)
    _log.info(
        "PDF %s: %d transactions, format=%s, confidence=%.2f",
        path,
        preview.total_rows,
        preview.detected_format,
        preview.confidence,
    )
    return preview


def parse_pdf(
    path: str | PathLike[str], *, cancel: threading.Event | None = None
) -> list[ParsedTransaction]:
    preview = parse_text(extract_text(path, cancel), None)
    return [line.to_transaction() for line in preview.transactions]


__all__ = [
    "IMAGE_PDF_MESSAGE",
    "PREVIEW_ROWS",
    "category_heading",
    "detect_layout",
    "extract_text",
    "is_header_line",
    "match_date",
    "parse_amount",
    "parse_line",
    "parse_pdf",
    "parse_text",
    "preview_pdf",
    "should_skip",
]
