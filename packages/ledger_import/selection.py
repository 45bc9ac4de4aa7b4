"""Row selection and sort order for the import preview.

Selection is tracked by *original* position in the parsed list. Sorting only
produces a projection (:func:`sorted_view`) that keeps those positions, so the
selection, its sum and the import payload never depend on display order.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, replace
from enum import StrEnum

from .models import ParsedTransaction


class SelectionSet:
    """Selected indices into a parsed transaction list of fixed ``size``.

    Notes
    -----
    ``toggle(i, shift_held=True)`` after a previous toggle adds the whole
    inclusive range between the two positions and never removes anything. A
    plain toggle flips membership of one index. Every toggle records
    ``last_touched_index``.
    """

    __slots__ = ("_size", "_selected", "last_touched_index")

    def __init__(self, size: int, selected: Iterable[int] = ()) -> None:
        if size < 0:
            raise ValueError("size must be non-negative")
        self._size = size
        self._selected: set[int] = set()
        self.last_touched_index: int | None = None
        for i in selected:
            self._check(i)
            self._selected.add(i)

    @classmethod
    def all_of(cls, size: int) -> SelectionSet:
        return cls(size, range(size))

    def _check(self, index: int) -> None:
        if not 0 <= index < self._size:
            raise IndexError(f"index {index} out of range for {self._size} rows")

    @property
    def size(self) -> int:
        return self._size

    @property
    def indices(self) -> list[int]:
        return sorted(self._selected)

    def __len__(self) -> int:
        return len(self._selected)

    def __contains__(self, index: object) -> bool:
        return index in self._selected

    def __iter__(self) -> Iterator[int]:
        return iter(self.indices)

    @property
    def all_selected(self) -> bool:
        return self._size > 0 and len(self._selected) == self._size

    def toggle(self, index: int, shift_held: bool = False) -> None:
        self._check(index)
        anchor = self.last_touched_index
        if shift_held and anchor is not None:
            lo, hi = min(anchor, index), max(anchor, index)
            self._selected.update(range(lo, hi + 1))
        elif index in self._selected:
            self._selected.discard(index)
        else:
            self._selected.add(index)
        self.last_touched_index = index

    def toggle_all(self) -> None:
        """Header checkbox: clear when everything is selected, else select all."""

        if self.all_selected:
            self.clear()
        else:
            self.select_all()

    def select_all(self) -> None:
        self._selected = set(range(self._size))

    def clear(self) -> None:
        self._selected.clear()

    def sum(self, transactions: Sequence[ParsedTransaction]) -> int:
        """Sum of the selected amounts in minor units."""

        if len(transactions) != self._size:
            raise ValueError("transaction list does not match the selection size")
        return sum(transactions[i].amount for i in self._selected)

    def __repr__(self) -> str:  # pragma: no cover - debug aid
        return f"SelectionSet(size={self._size}, selected={self.indices!r})"


# ---------------------------------------------------------------------------
# Sorting (display only)
# ---------------------------------------------------------------------------


class SortColumn(StrEnum):
    DATE = "date"
    PAYEE = "payee"
    AMOUNT = "amount"


class SortDirection(StrEnum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True, slots=True)
class SortState:
    column: SortColumn = SortColumn.DATE
    direction: SortDirection = SortDirection.DESC

    def click(self, column: SortColumn | str) -> SortState:
        """Return the state after a click on ``column``'s header.

        Clicking the active column flips its direction; a new column starts
        descending for dates and ascending otherwise.
        """

        col = SortColumn(column)
        if col == self.column:
            if self.direction == SortDirection.DESC:
                return replace(self, direction=SortDirection.ASC)
            return replace(self, direction=SortDirection.DESC)
        start = SortDirection.DESC if col == SortColumn.DATE else SortDirection.ASC
        return SortState(column=col, direction=start)


def _sort_key(column: SortColumn, tx: ParsedTransaction) -> str | int:
    if column == SortColumn.DATE:
        return tx.date
    if column == SortColumn.AMOUNT:
        return tx.amount
    return (tx.payee or "").lower()


def sorted_view(
    transactions: Sequence[ParsedTransaction], sort: SortState
) -> list[tuple[int, ParsedTransaction]]:
    """Return ``(original_index, transaction)`` pairs in display order."""

    # Stable sort; ties keep original order in both directions.
    pairs = list(enumerate(transactions))
    pairs.sort(
        key=lambda p: _sort_key(sort.column, p[1]),
        reverse=sort.direction == SortDirection.DESC,
    )
    return pairs


__all__ = [
    "SelectionSet",
    "SortColumn",
    "SortDirection",
    "SortState",
    "sorted_view",
]
