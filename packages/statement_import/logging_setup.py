"""Logging for ``statement_import``.

Engine modules log through ``get_logger("statement_import.<module>")`` with
``stage:event key=value`` messages and stay silent until an entry point (the
CLI, or the host application) calls :func:`configure_logging` once.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

ROOT_LOGGER = "statement_import"
LEVEL_ENV = "STATEMENT_IMPORT_LOG_LEVEL"
DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_CONFIGURED = False


def _resolve_level(level: int | str | None) -> int:
    """Explicit level first, then ``STATEMENT_IMPORT_LOG_LEVEL``, then INFO.

    Unknown names resolve to INFO rather than failing startup.
    """

    if level is None:
        level = os.getenv(LEVEL_ENV) or logging.INFO
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    return logging.getLevelNamesMapping().get(name, logging.INFO)


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Send package records to ``stream`` (stderr by default); later calls are no-ops."""

    global _CONFIGURED
    if _CONFIGURED:
        return

    resolved = _resolve_level(level)
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))

    root = logging.getLogger(ROOT_LOGGER)
    root.handlers = [h for h in root.handlers if not isinstance(h, logging.NullHandler)]
    root.addHandler(handler)
    root.setLevel(resolved)
    # records stop here; the host's root logger does not print them twice
    root.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    if not _CONFIGURED and not root.handlers:
        root.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger"]
