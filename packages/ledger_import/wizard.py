"""Import wizard: Upload -> Mapping -> Preview -> Transfers -> Complete.

The wizard owns every piece of mutable import state. Each step is a distinct
state object carrying only the data valid in that step, and every operation
checks that it is allowed from the current step before doing anything.

Failures are recoverable in place: a detection failure leaves the wizard on
Upload, a parse failure on Mapping and a commit failure on Preview, each with
``error`` set to a message for the user. Transfer detection failures are
logged and the import completes without candidates.

``cancel()`` may be called from another thread while a step is running. It
signals PDF extraction to stop and bumps the session counter so a result that
arrives afterwards is discarded.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, ClassVar

from .committer import LedgerBackend, commit_selection
from .errors import (
    CommitError,
    FormatDetectionError,
    ImportCancelled,
    InvalidTransitionError,
    ParseError,
    TransferLinkError,
)
from .ingest.detect import DetectedStatement, detect_statement, parser_for
from .ingest.parsers import StatementPath
from .logging_setup import get_logger
from .mapping import ColumnMapping
from .models import ImportResult, ParsedTransaction, PdfPreview, StatementFormat, TransferCandidate
from .selection import SelectionSet, SortColumn, SortState, sorted_view
from .transfers import TransferReview, TransfersFound, detect_transfer_candidates

_log = get_logger("ledger_import.wizard")


class Step(StrEnum):
    UPLOAD = "upload"
    MAPPING = "mapping"
    PREVIEW = "preview"
    TRANSFERS = "transfers"
    COMPLETE = "complete"


# ---------------------------------------------------------------------------
# States
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class UploadState:
    step: ClassVar[Step] = Step.UPLOAD


@dataclass(slots=True)
class MappingState:
    """A detected file awaiting mapping review (``mapping`` is CSV-only)."""

    step: ClassVar[Step] = Step.MAPPING

    detected: DetectedStatement
    mapping: ColumnMapping | None = None
    use_separate_columns: bool = False
    account_id: str | None = None


@dataclass(slots=True)
class PreviewState:
    step: ClassVar[Step] = Step.PREVIEW

    detected: DetectedStatement
    transactions: tuple[ParsedTransaction, ...]
    selection: SelectionSet
    mapping: ColumnMapping | None = None
    use_separate_columns: bool = False
    account_id: str | None = None
    sort: SortState = field(default_factory=SortState)
    committing: bool = False


@dataclass(slots=True)
class TransfersState:
    step: ClassVar[Step] = Step.TRANSFERS

    result: ImportResult
    review: TransferReview


@dataclass(frozen=True, slots=True)
class CompleteState:
    step: ClassVar[Step] = Step.COMPLETE

    result: ImportResult


type WizardState = UploadState | MappingState | PreviewState | TransfersState | CompleteState

_ALLOWED: dict[Step, frozenset[Step]] = {
    Step.UPLOAD: frozenset({Step.MAPPING, Step.UPLOAD}),
    Step.MAPPING: frozenset({Step.UPLOAD, Step.PREVIEW}),
    Step.PREVIEW: frozenset({Step.UPLOAD, Step.MAPPING, Step.TRANSFERS, Step.COMPLETE}),
    Step.TRANSFERS: frozenset({Step.UPLOAD, Step.COMPLETE}),
    Step.COMPLETE: frozenset({Step.UPLOAD}),
}

type Detector = Callable[..., DetectedStatement]


class ImportWizard:
    """Drives one statement import against a :class:`LedgerBackend`.

    Parameters
    ----------
    backend:
        The ledger receiving the import and providing transfer detection.
    detector:
        Format detector; defaults to :func:`detect_statement`. It is called
        as ``detector(path, cancel=event)``.
    """

    def __init__(self, backend: LedgerBackend, *, detector: Detector = detect_statement) -> None:
        self.backend = backend
        self._detector = detector
        self.state: WizardState = UploadState()
        self.error: str | None = None
        self._session = 0
        self._cancel = threading.Event()
        self._lock = threading.Lock()

    # -- introspection -----------------------------------------------------

    @property
    def step(self) -> Step:
        return self.state.step

    @property
    def warnings(self) -> list[str]:
        """Non-blocking notices for the current step (low PDF confidence)."""

        state = self.state
        if isinstance(state, MappingState | PreviewState):
            preview = state.detected.preview
            if isinstance(preview, PdfPreview) and preview.confidence_warning:
                return [preview.confidence_warning]
        return []

    @property
    def result(self) -> ImportResult | None:
        state = self.state
        if isinstance(state, TransfersState | CompleteState):
            return state.result
        return None

    @property
    def selected_total(self) -> int:
        state = self._require("selected_total", PreviewState)
        return state.selection.sum(state.transactions)

    def preview_rows(self) -> list[tuple[int, ParsedTransaction]]:
        """Parsed rows in the current sort order, keyed by original index."""

        state = self._require("preview_rows", PreviewState)
        return sorted_view(state.transactions, state.sort)

    # -- plumbing ----------------------------------------------------------

    def _require[S](self, operation: str, *kinds: type[S]) -> S:
        if not isinstance(self.state, kinds):
            raise InvalidTransitionError(f"{operation}() is not allowed in the {self.step} step")
        return self.state  # type: ignore[return-value]

    def _transition(self, new_state: WizardState) -> WizardState:
        if new_state.step not in _ALLOWED[self.step]:
            raise InvalidTransitionError(f"cannot move from {self.step} to {new_state.step}")
        _log.debug("Wizard %s -> %s", self.step, new_state.step)
        self.state = new_state
        return new_state

    def _stale(self, session: int) -> bool:
        if session != self._session:
            _log.info("Discarding result of a cancelled step")
            return True
        return False

    def _reset(self) -> WizardState:
        self._session += 1
        self._cancel.set()
        self._cancel = threading.Event()
        self.error = None
        return self._transition(UploadState())

    # -- Upload ------------------------------------------------------------

    def select_file(self, path: StatementPath) -> WizardState:
        """Detect ``path``; moves to Mapping or stays on Upload with ``error``."""

        self._require("select_file", UploadState)
        session, cancel = self._session, self._cancel
        self.error = None
        try:
            detected = self._detector(path, cancel=cancel)
        except ImportCancelled:
            return self.state
        except FormatDetectionError as exc:
            if not self._stale(session):
                self.error = str(exc)
            return self.state
        if self._stale(session):
            return self.state

        guess = detected.mapping_guess
        return self._transition(
            MappingState(
                detected=detected,
                mapping=guess.mapping.model_copy() if guess else None,
                use_separate_columns=guess.use_separate_columns if guess else False,
            )
        )

    # -- Mapping -----------------------------------------------------------

    def update_mapping(self, **changes: Any) -> ColumnMapping:
        """Apply field changes to the CSV mapping.

        Invalid values raise ``pydantic.ValidationError`` and leave the mapping
        untouched.
        """

        state = self._require("update_mapping", MappingState)
        if state.mapping is None:
            raise InvalidTransitionError(
                f"{state.detected.format} statements have no column mapping"
            )
        state.mapping = ColumnMapping.model_validate({**state.mapping.model_dump(), **changes})
        return state.mapping

    def set_use_separate_columns(self, enabled: bool) -> None:
        state = self._require("set_use_separate_columns", MappingState)
        state.use_separate_columns = enabled

    def set_account(self, account_id: str | None) -> None:
        state = self._require("set_account", MappingState, PreviewState)
        state.account_id = account_id

    def parse(self) -> WizardState:
        """Parse the whole file; moves to Preview with every row selected."""

        state = self._require("parse", MappingState)
        session = self._session
        self.error = None
        try:
            if state.detected.format == StatementFormat.CSV:
                if state.mapping is None:
                    raise ParseError("No column mapping configured")
                frozen = state.mapping.resolve(state.use_separate_columns)
                parser = parser_for(state.detected, mapping=frozen)
            else:
                parser = parser_for(state.detected, cancel=self._cancel)
            transactions = tuple(parser.parse(state.detected.path))
        except ImportCancelled:
            return self.state
        except ParseError as exc:
            if not self._stale(session):
                self.error = str(exc)
            return self.state
        if self._stale(session):
            return self.state
        if not transactions:
            self.error = "No transactions found in file"
            return self.state

        return self._transition(
            PreviewState(
                detected=state.detected,
                transactions=transactions,
                selection=SelectionSet.all_of(len(transactions)),
                mapping=state.mapping,
                use_separate_columns=state.use_separate_columns,
                account_id=state.account_id,
            )
        )

    # -- Preview -----------------------------------------------------------

    def toggle(self, index: int, shift_held: bool = False) -> None:
        state = self._require("toggle", PreviewState)
        state.selection.toggle(index, shift_held)

    def toggle_all(self) -> None:
        state = self._require("toggle_all", PreviewState)
        state.selection.toggle_all()

    def sort_by(self, column: SortColumn | str) -> SortState:
        state = self._require("sort_by", PreviewState)
        state.sort = state.sort.click(column)
        return state.sort

    def commit(self, account_id: str | None = None) -> WizardState:
        """Import the selection, then look for transfer candidates.

        Moves to Transfers when candidates exist, otherwise to Complete. A
        failed import stays on Preview with ``error`` set and can be retried.
        """

        with self._lock:
            state = self._require("commit", PreviewState)
            if state.committing:
                raise InvalidTransitionError("an import for this preview is already running")
            if account_id is not None:
                state.account_id = account_id
            if state.account_id is None:
                self.error = "Select an account to import into"
                return self.state
            if not len(state.selection):
                self.error = "Select at least one transaction to import"
                return self.state
            state.committing = True

        session = self._session
        self.error = None
        try:
            counts = commit_selection(
                self.backend, state.account_id, state.transactions, state.selection
            )
        except CommitError as exc:
            state.committing = False
            if not self._stale(session):
                self.error = str(exc)
            return self.state
        if self._stale(session):
            return self.state

        result = ImportResult.from_counts(counts)
        if result.imported == 0:
            return self._transition(CompleteState(result))

        detection = detect_transfer_candidates(self.backend)
        if self._stale(session):
            return self.state
        match detection:
            case TransfersFound(candidates=candidates):
                review = TransferReview.of(self.backend, candidates)
                return self._transition(TransfersState(result=result, review=review))
            case _:
                return self._transition(CompleteState(result))

    # -- Transfers ---------------------------------------------------------

    @property
    def pending_transfers(self) -> list[TransferCandidate]:
        state = self._require("pending_transfers", TransfersState)
        return list(state.review.pending)

    def accept_transfer(self, candidate: TransferCandidate) -> WizardState:
        """Link ``candidate``; on failure it stays pending with ``error`` set."""

        state = self._require("accept_transfer", TransfersState)
        self.error = None
        try:
            state.review.accept(candidate)
        except TransferLinkError as exc:
            self.error = str(exc)
            return self.state
        state.result = state.result.with_transfer_linked()
        return self.state

    def reject_transfer(self, candidate: TransferCandidate) -> WizardState:
        state = self._require("reject_transfer", TransfersState)
        state.review.reject(candidate)
        return self.state

    def finish_transfers(self) -> WizardState:
        """Skip whatever is still pending and complete the import."""

        state = self._require("finish_transfers", TransfersState)
        self.error = None
        return self._transition(CompleteState(state.result))

    # -- navigation --------------------------------------------------------

    def back(self) -> WizardState:
        state = self._require("back", MappingState, PreviewState)
        if isinstance(state, MappingState):
            return self._reset()
        self.error = None
        return self._transition(
            MappingState(
                detected=state.detected,
                mapping=state.mapping,
                use_separate_columns=state.use_separate_columns,
                account_id=state.account_id,
            )
        )

    def import_more(self) -> WizardState:
        self._require("import_more", TransfersState, CompleteState)
        return self._reset()

    def cancel(self) -> WizardState:
        """Abandon the import from any step but Complete."""

        if isinstance(self.state, CompleteState):
            raise InvalidTransitionError("cancel() is not allowed in the complete step")
        _log.info("Import cancelled in the %s step", self.step)
        return self._reset()


__all__ = [
    "CompleteState",
    "ImportWizard",
    "MappingState",
    "PreviewState",
    "Step",
    "TransfersState",
    "UploadState",
    "WizardState",
]
