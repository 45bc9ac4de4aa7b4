"""Pytest configuration for test isolation.

The package reads ``DATABASE_URL`` and ``LEDGER_IMPORT_*`` variables from the
environment (and a developer's ``.env`` may have exported them). Tests must
never touch a real ledger database or inherit a custom transfer window, so an
autouse fixture clears them. Engines are cached per URL in ``db.client``; they
are disposed after each test so SQLite files in ``tmp_path`` are released.
"""

from __future__ import annotations

import os
from collections.abc import Iterator

import pytest
from db.client import dispose_engines


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.delenv("DATABASE_URL", raising=False)
    for name in list(os.environ):
        if name.startswith("LEDGER_IMPORT_"):
            monkeypatch.delenv(name, raising=False)
    yield
    dispose_engines()
