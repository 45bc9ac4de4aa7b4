"""Logging configuration for the ``ledger_import`` package.

Two helpers:

- ``configure_logging(...)`` attaches one ``StreamHandler`` to the
  ``"ledger_import"`` logger. Entrypoints (the CLI) call it once at startup.
- ``get_logger(name)`` returns a named logger and makes sure the package
  logger carries a ``NullHandler`` while nothing has been configured, so
  library use stays silent.

Modules under ``ledger_import`` only ever call
``get_logger("ledger_import.<module>")``; they never attach handlers.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "ledger_import"
_LEVEL_ENV = "LEDGER_IMPORT_LOG_LEVEL"
_DEFAULT_FMT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_CONFIGURED = False


def _level_from(value: int | str | None) -> int | None:
    if isinstance(value, int):
        return value
    if not value:
        return None
    name = value.strip().upper()
    if name.isdigit():
        return int(name)
    numeric = getattr(logging, name, None)
    return numeric if isinstance(numeric, int) else None


def _parse_level(level: int | str | None) -> int:
    """Resolve ``level``, then ``LEDGER_IMPORT_LOG_LEVEL``, then INFO."""

    for candidate in (level, os.getenv(_LEVEL_ENV)):
        resolved = _level_from(candidate)
        if resolved is not None:
            return resolved
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Configure the package logger exactly once.

    Parameters
    ----------
    level:
        ``int`` or level name such as ``"DEBUG"``. ``None`` reads
        ``LEDGER_IMPORT_LOG_LEVEL`` and otherwise uses ``logging.INFO``.
    fmt:
        Optional format string; defaults to
        ``"%(asctime)s %(name)s %(levelname)s %(message)s"``.
    stream:
        Destination of the single handler (``sys.stderr`` when omitted).
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    resolved = _parse_level(level)
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FMT))

    logger.setLevel(resolved)
    logger.addHandler(handler)
    # Keep records off the root logger.
    logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)`` with a silent default for libraries."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger"]
