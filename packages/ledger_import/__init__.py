"""Public interface for the ``ledger_import`` package.

Only symbol re-exports live here; see the individual modules for behavior.
"""

from .committer import LedgerBackend, build_import_payload, commit_selection
from .errors import (
    CommitError,
    FormatDetectionError,
    ImportCancelled,
    ImportWizardError,
    InvalidTransitionError,
    ParseError,
    TransferDetectionError,
    TransferLinkError,
)
from .ingest import DetectedStatement, detect_statement
from .mapping import ColumnMapping, FrozenColumnMapping, MappingGuess, guess_column_mapping
from .models import (
    Account,
    Category,
    CsvPreview,
    FixedTextPreview,
    FormatPreview,
    ImportCounts,
    ImportPayloadItem,
    ImportResult,
    LedgerTransaction,
    ParsedTransaction,
    PdfPreview,
    StatementFormat,
    StatementLine,
    TransferCandidate,
)
from .selection import SelectionSet, SortColumn, SortDirection, SortState, sorted_view
from .transfers import (
    NoTransfers,
    TransferReview,
    TransfersFound,
    detect_transfer_candidates,
    find_transfer_candidates,
)
from .wizard import ImportWizard, Step

__all__ = [
    # Wizard
    "ImportWizard",
    "Step",
    # Detection / mapping
    "detect_statement",
    "DetectedStatement",
    "guess_column_mapping",
    "ColumnMapping",
    "FrozenColumnMapping",
    "MappingGuess",
    # Selection
    "SelectionSet",
    "SortColumn",
    "SortDirection",
    "SortState",
    "sorted_view",
    # Commit / transfers
    "LedgerBackend",
    "build_import_payload",
    "commit_selection",
    "detect_transfer_candidates",
    "find_transfer_candidates",
    "TransferReview",
    "TransfersFound",
    "NoTransfers",
    # Models / types
    "Account",
    "Category",
    "CsvPreview",
    "FixedTextPreview",
    "FormatPreview",
    "ImportCounts",
    "ImportPayloadItem",
    "ImportResult",
    "LedgerTransaction",
    "ParsedTransaction",
    "PdfPreview",
    "StatementFormat",
    "StatementLine",
    "TransferCandidate",
    # Errors
    "ImportWizardError",
    "FormatDetectionError",
    "ParseError",
    "CommitError",
    "TransferDetectionError",
    "TransferLinkError",
    "InvalidTransitionError",
    "ImportCancelled",
]
