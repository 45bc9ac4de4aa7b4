"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the ledger models used by ``ledger_import``.
"""

from .ledger import Base, LiAccount, LiCategory, LiTransaction

__all__ = [
    "Base",
    "LiAccount",
    "LiCategory",
    "LiTransaction",
]
