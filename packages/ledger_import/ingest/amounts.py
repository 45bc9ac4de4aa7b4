"""Amount and date normalization shared by the statement parsers."""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

# Tried in order when no explicit format is configured.
COMMON_DATE_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%d/%m/%Y",
    "%Y/%m/%d",
    "%m-%d-%Y",
    "%d-%m-%Y",
)

_CENT = Decimal("1")
_HUNDRED = Decimal("100")


def to_minor_units(raw: str | None) -> int:
    """Convert a money string to signed cents.

    Accepts ``$``, thousands separators, a leading sign and parenthesised
    negatives in any combination (``"-($1,234.56)"``). Empty input is zero.
    Raises ``ValueError`` for anything that is not a finite number.
    """

    if raw is None:
        return 0
    s = raw.strip()
    if not s:
        return 0

    negative = False
    # Strip sign, currency symbol and parentheses until stable so any order of
    # these markers is accepted.
    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:].lstrip()
            changed = True
        elif s.startswith("-"):
            negative = True
            s = s[1:].lstrip()
            changed = True
        if s.startswith("$"):
            s = s[1:].lstrip()
            changed = True
        if s.startswith("(") and s.endswith(")") and len(s) >= 2:
            negative = True
            s = s[1:-1].strip()
            changed = True
        if not changed:
            break

    s = s.replace(",", "").strip()
    try:
        d = Decimal(s)
        if not d.is_finite():
            raise InvalidOperation(s)
        cents = int((d * _HUNDRED).quantize(_CENT, rounding=ROUND_HALF_UP))
    except InvalidOperation as exc:
        raise ValueError(f"invalid amount: {raw!r}") from exc
    return -abs(cents) if negative else cents


def parse_date(raw: str, date_format: str = "") -> str:
    """Return ``raw`` as ISO ``YYYY-MM-DD``.

    With ``date_format`` set only that format is tried; otherwise each of
    :data:`COMMON_DATE_FORMATS` is tried in order. Raises ``ValueError`` when
    nothing matches.
    """

    s = raw.strip()
    if not s:
        raise ValueError("date is empty")
    formats = (date_format,) if date_format else COMMON_DATE_FORMATS
    for fmt in formats:
        try:
            return datetime.strptime(s, fmt).date().isoformat()
        except ValueError:
            continue
    if date_format:
        raise ValueError(f"date {s!r} does not match format {date_format!r}")
    raise ValueError(f"unrecognised date {s!r}")


__all__ = ["COMMON_DATE_FORMATS", "parse_date", "to_minor_units"]
