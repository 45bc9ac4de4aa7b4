"""Transfer candidate detection and user-confirmed linking.

A transfer between two of the user's own accounts shows up as two ledger
transactions: same magnitude, opposite sign, different accounts, a few days
apart. :func:`find_transfer_candidates` scores such pairs; the ledger calls it
over its unlinked recent transactions. Nothing is linked automatically:
:class:`TransferReview` links a pair only when the user accepts it.

Detection from the import flow goes through :func:`detect_transfer_candidates`,
which returns a result value instead of raising, so a failed detection can
never undo a successful import.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta

from .committer import LedgerBackend
from .errors import TransferLinkError
from .logging_setup import get_logger
from .models import LedgerTransaction, TransferCandidate

TRANSFER_KEYWORDS: tuple[str, ...] = (
    "transfer",
    "xfer",
    "payment",
    "ach",
    "wire",
    "zelle",
    "venmo",
)

DEFAULT_WINDOW_DAYS = 90
MAX_DAYS_APART = 5
MIN_CONFIDENCE = 0.5
MAX_CANDIDATES = 20
DATE_WEIGHT = 0.6
PAYEE_WEIGHT = 0.4

_WINDOW_ENV = "LEDGER_IMPORT_TRANSFER_WINDOW_DAYS"

_log = get_logger("ledger_import.transfers")


def transfer_window_days() -> int:
    """Look-back window in days (``LEDGER_IMPORT_TRANSFER_WINDOW_DAYS`` or 90)."""

    raw = os.getenv(_WINDOW_ENV)
    if not raw:
        return DEFAULT_WINDOW_DAYS
    try:
        value = int(raw)
    except ValueError:
        _log.warning("Ignoring non-integer %s=%r", _WINDOW_ENV, raw)
        return DEFAULT_WINDOW_DAYS
    return value if value > 0 else DEFAULT_WINDOW_DAYS


def _has_transfer_keyword(payee: str | None) -> bool:
    if not payee:
        return False
    lower = payee.lower()
    return any(k in lower for k in TRANSFER_KEYWORDS)


def payee_similarity(payee_a: str | None, payee_b: str | None) -> float:
    """Score how transfer-like a pair of payees looks.

    0.8 when both mention a transfer keyword, 0.5 when one does, 0.3
    otherwise (including when either payee is missing).
    """

    if payee_a is None or payee_b is None:
        return 0.3
    hits = _has_transfer_keyword(payee_a) + _has_transfer_keyword(payee_b)
    return (0.3, 0.5, 0.8)[hits]


def _pair_confidence(a: LedgerTransaction, b: LedgerTransaction, days_apart: int) -> float:
    date_score = 1.0 - days_apart / MAX_DAYS_APART
    return date_score * DATE_WEIGHT + payee_similarity(a.payee, b.payee) * PAYEE_WEIGHT


def find_transfer_candidates(
    transactions: Iterable[LedgerTransaction],
    *,
    today: date | None = None,
    window_days: int | None = None,
    max_days_apart: int = MAX_DAYS_APART,
    min_confidence: float = MIN_CONFIDENCE,
    limit: int = MAX_CANDIDATES,
) -> list[TransferCandidate]:
    """Score opposite-amount pairs across accounts.

    Parameters
    ----------
    transactions:
        Ledger transactions to consider. Already-linked rows (``transfer_id``
        set), zero amounts and rows older than the window are ignored.
    today:
        Reference date for the look-back window (defaults to today).
    window_days:
        Look-back window; defaults to :func:`transfer_window_days`.

    Returns
    -------
    list[TransferCandidate]
        Pairs with ``confidence > min_confidence``, best first, at most
        ``limit`` of them. Within a pair, ``transaction_a`` is the later one.
    """

    ref = today or date.today()
    cutoff = ref - timedelta(days=window_days or transfer_window_days())

    pool: list[tuple[date, LedgerTransaction]] = []
    for tx in transactions:
        if tx.transfer_id is not None or tx.amount == 0:
            continue
        try:
            d = date.fromisoformat(tx.date)
        except ValueError:
            continue
        if d >= cutoff:
            pool.append((d, tx))
    pool.sort(key=lambda p: p[0], reverse=True)

    candidates: list[TransferCandidate] = []
    for i, (date_a, tx_a) in enumerate(pool):
        for date_b, tx_b in pool[i + 1 :]:
            if tx_a.account_id == tx_b.account_id or tx_a.amount != -tx_b.amount:
                continue
            days_apart = abs((date_a - date_b).days)
            if days_apart > max_days_apart:
                continue
            confidence = _pair_confidence(tx_a, tx_b, days_apart)
            if confidence > min_confidence:
                candidates.append(TransferCandidate(tx_a, tx_b, confidence))

    candidates.sort(key=lambda c: c.confidence, reverse=True)
    return candidates[:limit]


# ---------------------------------------------------------------------------
# Detection result
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TransfersFound:
    candidates: tuple[TransferCandidate, ...]


@dataclass(frozen=True, slots=True)
class NoTransfers:
    """No candidates; ``error`` carries the failure message when detection failed."""

    error: str | None = None


type TransferDetection = TransfersFound | NoTransfers


def detect_transfer_candidates(backend: LedgerBackend) -> TransferDetection:
    try:
        candidates = backend.detect_transfers()
    except Exception as exc:
        _log.warning("Transfer detection failed; continuing without candidates", exc_info=True)
        return NoTransfers(error=str(exc))
    if not candidates:
        return NoTransfers()
    _log.info("Found %d transfer candidates", len(candidates))
    return TransfersFound(tuple(candidates))


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------


def _involves(candidate: TransferCandidate, ids: set[str]) -> bool:
    return candidate.transaction_a.id in ids or candidate.transaction_b.id in ids


@dataclass(slots=True)
class TransferReview:
    """Pending candidates and the number of pairs linked so far."""

    backend: LedgerBackend
    pending: list[TransferCandidate] = field(default_factory=list)
    linked: int = 0

    @classmethod
    def of(cls, backend: LedgerBackend, candidates: Sequence[TransferCandidate]) -> TransferReview:
        return cls(backend=backend, pending=list(candidates))

    @property
    def done(self) -> bool:
        return not self.pending

    def _index(self, candidate: TransferCandidate) -> int:
        try:
            return self.pending.index(candidate)
        except ValueError:
            raise ValueError("candidate is not pending review") from None

    def accept(self, candidate: TransferCandidate) -> str:
        """Link ``candidate`` and drop it (and pairs sharing its rows).

        Raises
        ------
        TransferLinkError
            When the ledger fails to link; the candidate stays pending.
        """

        self._index(candidate)
        a, b = candidate.transaction_a, candidate.transaction_b
        try:
            transfer_id = self.backend.link_transfer(a.id, b.id)
        except Exception as exc:
            _log.warning("Linking %s <-> %s failed: %s", a.id, b.id, exc)
            raise TransferLinkError(f"Failed to link transfer: {exc}") from exc
        # Linked rows can no longer pair with anything else.
        used = {a.id, b.id}
        self.pending = [c for c in self.pending if not _involves(c, used)]
        self.linked += 1
        return transfer_id

    def reject(self, candidate: TransferCandidate) -> None:
        del self.pending[self._index(candidate)]


__all__ = [
    "TRANSFER_KEYWORDS",
    "NoTransfers",
    "TransferDetection",
    "TransferReview",
    "TransfersFound",
    "detect_transfer_candidates",
    "find_transfer_candidates",
    "payee_similarity",
    "transfer_window_days",
]
