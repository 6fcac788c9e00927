"""Logging for the importer.

Every stage module logs through ``get_logger("finance_import.<stage>")`` and
stays silent until the CLI, or whatever application embeds the importer,
calls ``configure_logging`` once. Only that call attaches a handler; the
level comes from the argument or from ``FINANCE_IMPORT_LOG_LEVEL``.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "finance_import"
_LEVEL_ENV = "FINANCE_IMPORT_LOG_LEVEL"
_DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_CONFIGURED = False


def _parse_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    # Explicit value first, then the env override; unknown names fall through.
    for candidate in (level, os.getenv(_LEVEL_ENV)):
        if not candidate or not candidate.strip():
            continue
        name = candidate.strip().upper()
        if name.isdigit():
            return int(name)
        numeric = getattr(logging, name, None)
        if isinstance(numeric, int):
            return numeric
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Send ``finance_import.*`` records to ``stream``; later calls are no-ops.

    ``level`` may be a number or a level name such as ``"DEBUG"``; an unknown
    or missing name falls back to ``FINANCE_IMPORT_LOG_LEVEL``, then ``INFO``.
    Records go to stderr by default so report output on stdout stays clean.
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)

    # Drop NullHandlers installed by get_logger() before configuration.
    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    resolved = _parse_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))

    logger.setLevel(resolved)
    logger.addHandler(handler)
    logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger by name, silent until an application configures output."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger"]
