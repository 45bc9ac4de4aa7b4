"""Fixed-format plain-text statement reader (Bank of America ``.txt`` export).

Layout handled::

    Description                              Summary Amt.
    Beginning balance as of 01/01/2025              7,703.79
    ...
    Ending balance as of 01/31/2025                 7,938.79

    Date        Description                          Amount  Running Bal.
    01/01/2025  Beginning balance as of 01/01/2025             7,703.79
    01/03/2025  PAYROLL DEPOSIT                     1,285.00   8,988.79
    01/05/2025  RENT PAYMENT                       -1,050.00   7,938.79

The summary block supplies the beginning and ending balances (display only).
Transactions follow the ``Date / Description / Amount`` header; each line has
an ``MM/DD/YYYY`` date, a description and one or two right-aligned amounts:
the transaction amount and the running balance. Amounts already follow the
income-positive convention.
"""

from __future__ import annotations

import re
from datetime import date
from os import PathLike

from ..errors import ParseError
from ..logging_setup import get_logger
from ..models import FixedTextPreview, ParsedTransaction, StatementLine
from .amounts import to_minor_units

PREVIEW_ROWS = 20

_BEGINNING = "Beginning balance as of"
_ENDING = "Ending balance as of"
_OPENING_ROW = "Beginning balance"

_DATE_RE = re.compile(r"^(\d{2})/(\d{2})/(\d{4})")
_AMOUNT = r"-?[\d,]+\.\d{2}"
# Trailing "amount [balance]" block; leftmost match keeps at most the last two.
_TRAILING_AMOUNTS_RE = re.compile(rf"\s+(?P<amount>{_AMOUNT})(?:\s+(?P<balance>{_AMOUNT}))?\s*$")

_log = get_logger("ledger_import.ingest.fixed_text")


def _is_section_header(stripped: str) -> bool:
    return stripped.startswith("Date") and "Description" in stripped and "Amount" in stripped


def _summary_amount(stripped: str) -> int | None:
    last = stripped.split()[-1]
    try:
        return to_minor_units(last)
    except ValueError:
        return None


def parse_line(line: str) -> StatementLine | None:
    """Parse one transaction line; ``None`` when it is not one."""

    stripped = line.strip()
    m = _DATE_RE.match(stripped)
    if m is None:
        return None
    month, day, year = (int(g) for g in m.groups())
    try:
        iso = date(year, month, day).isoformat()
    except ValueError:
        return None

    rest = stripped[m.end() :]
    amounts = _TRAILING_AMOUNTS_RE.search(rest)
    if amounts is None:
        return None
    description = rest[: amounts.start()].strip()
    if not description:
        return None

    balance = amounts.group("balance")
    return StatementLine(
        date=iso,
        description=description,
        amount=to_minor_units(amounts.group("amount")),
        running_balance=to_minor_units(balance) if balance is not None else None,
        raw_line=line,
    )


def parse_text(text: str, limit: int | None = PREVIEW_ROWS) -> FixedTextPreview:
    """Parse statement ``text``; ``limit`` caps the sample (``None`` keeps all)."""

    lines: list[StatementLine] = []
    beginning: int | None = None
    ending: int | None = None
    in_transactions = False

    for raw in text.splitlines():
        stripped = raw.strip()
        if stripped.startswith(_BEGINNING):
            beginning = _summary_amount(stripped)
        elif stripped.startswith(_ENDING):
            ending = _summary_amount(stripped)

        if _is_section_header(stripped):
            in_transactions = True
            continue
        if not in_transactions or not stripped:
            continue

        parsed = parse_line(raw)
        if parsed is None or _OPENING_ROW in parsed.description:
            continue
        lines.append(parsed)

    sample = lines if limit is None else lines[:limit]
    return FixedTextPreview(
        transactions=tuple(sample),
        total_rows=len(lines),
        beginning_balance=beginning,
        ending_balance=ending,
    )


def _read_text(path: str | PathLike[str]) -> str:
    try:
        with open(path, encoding="utf-8-sig") as f:
            return f.read()
    except UnicodeDecodeError as exc:
        raise ParseError(f"File is not UTF-8 text: {path}") from exc
    except OSError as exc:
        raise ParseError(f"Cannot read {path}: {exc.strerror or exc}") from exc


def preview_fixed_text(path: str | PathLike[str], limit: int = PREVIEW_ROWS) -> FixedTextPreview:
    return parse_text(_read_text(path), limit)


def parse_fixed_text(path: str | PathLike[str]) -> list[ParsedTransaction]:
    preview = parse_text(_read_text(path), None)
    _log.info("Parsed %d fixed-text lines from %s", preview.total_rows, path)
    return [line.to_transaction() for line in preview.transactions]


__all__ = [
    "PREVIEW_ROWS",
    "parse_fixed_text",
    "parse_line",
    "parse_text",
    "preview_fixed_text",
]
