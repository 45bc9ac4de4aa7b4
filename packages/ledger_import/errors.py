"""Exception types raised across the import pipeline.

Each wizard step maps one of these to a recovery path: detection errors keep
the wizard on Upload, parse errors on Mapping, commit errors on Preview.
Transfer detection failures never escape the wizard; they are logged and the
flow completes without candidates.
"""

from __future__ import annotations


class ImportWizardError(Exception):
    """Base class for every error raised by ``ledger_import``."""


class FormatDetectionError(ImportWizardError):
    """The selected file could not be recognised as a usable statement."""


class ParseError(ImportWizardError):
    """A statement (or one of its rows) could not be converted."""


class CommitError(ImportWizardError):
    """The ledger rejected or failed an import batch."""


class TransferDetectionError(ImportWizardError):
    """Transfer candidate detection failed inside the ledger."""


class TransferLinkError(ImportWizardError):
    """Linking a confirmed transfer pair failed; the candidate is kept."""


class InvalidTransitionError(ImportWizardError):
    """An operation was requested from a wizard state that does not allow it."""


class ImportCancelled(ImportWizardError):
    """Work was abandoned because the user cancelled the import."""


__all__ = [
    "ImportWizardError",
    "FormatDetectionError",
    "ParseError",
    "CommitError",
    "TransferDetectionError",
    "TransferLinkError",
    "InvalidTransitionError",
    "ImportCancelled",
]
