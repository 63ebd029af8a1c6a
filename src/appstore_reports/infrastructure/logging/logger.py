# src/appstore_reports/infrastructure/logging/logger.py
# Copyright (c) Arche.
# SPDX-License-Identifier: MIT
"""JSON-lines logging for report runs.

Every record is rendered as a single JSON object on stderr.

Payload:
    * ``ts``, ``level``, ``logger`` and ``message`` on every line.
    * Automatic enrichment with ``run_id`` and ``item_index`` via contextvars,
      so every line emitted while an item is processed can be correlated.
    * Fields passed through ``extra=`` are merged into the payload.
    * Enrichment never raises; a failure is reported as ``context_error``.

Usage:
    configure_root_logging()
    log = get_json_logger(__name__)
    log.info("appstore.item.start", extra={"family": "ANALYTICS"})
"""

from __future__ import annotations

import json
import logging
import os
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

__all__ = [
    "configure_root_logging",
    "get_json_logger",
    "set_run_context",
    "clear_run_context",
    "get_run_id",
    "get_item_index",
]

_RUN_ID_CTX: ContextVar[str | None] = ContextVar("appstore_run_id", default=None)
_ITEM_INDEX_CTX: ContextVar[int | None] = ContextVar("appstore_item_index", default=None)

_QUIET_LOGGERS: tuple[str, ...] = ("httpx", "httpcore")

# Attributes every LogRecord carries; anything else came from ``extra=``.
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime", "taskName"}


def set_run_context(*, run_id: str | None = None, item_index: int | None = None) -> None:
    """Set correlation identifiers on the current context.

    Args:
        run_id: Identifier of the orchestrator run.
        item_index: Index of the input item being processed.

    Notes:
        Additive: passing only one argument leaves the other unchanged.
    """
    if run_id is not None:
        _RUN_ID_CTX.set(run_id)
    if item_index is not None:
        _ITEM_INDEX_CTX.set(item_index)


def clear_run_context() -> None:
    """Reset both correlation identifiers."""
    _RUN_ID_CTX.set(None)
    _ITEM_INDEX_CTX.set(None)


def get_run_id() -> str | None:
    """Return the current run id, if any."""
    return _RUN_ID_CTX.get(None)


def get_item_index() -> int | None:
    """Return the index of the item currently being processed, if any."""
    return _ITEM_INDEX_CTX.get(None)


class _JsonFormatter(logging.Formatter):
    """Render log records as compact JSON with run context and extras."""

    def format(self, record: logging.LogRecord) -> str:
        """Return ``record`` as one JSON line."""
        payload: dict[str, Any] = {
            "ts": datetime.now(tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        try:
            run_id = getattr(record, "run_id", None) or _RUN_ID_CTX.get(None)
            if run_id:
                payload["run_id"] = run_id
            item_index = getattr(record, "item_index", None)
            if item_index is None:
                item_index = _ITEM_INDEX_CTX.get(None)
            if item_index is not None:
                payload["item_index"] = item_index
        except Exception as exc:  # pragma: no cover
            payload["context_error"] = str(exc)

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            if exc_type is not None:
                payload["exc_type"] = exc_type.__name__
            if exc_value is not None:
                payload["exc_message"] = str(exc_value)

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key in payload:
                continue
            payload[key] = value

        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)


def configure_root_logging(level: str | int | None = None) -> None:
    """Attach the JSON handler to the root logger and set its level.

    Safe to call repeatedly: the handler is installed once, the level is
    updated every time. The ``httpx`` and ``httpcore`` loggers are held at
    WARNING; their request lines carry full pre-signed URLs.

    Args:
        level: Level number or name. Defaults to ``LOG_LEVEL`` from the
            environment, then ``INFO``.
    """
    root = logging.getLogger()
    if level is None:
        level = os.getenv("LOG_LEVEL") or "INFO"
    root.setLevel(level.upper() if isinstance(level, str) else level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if any(isinstance(h.formatter, _JsonFormatter) for h in root.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(_JsonFormatter())
    root.addHandler(handler)


def get_json_logger(name: str) -> logging.Logger:
    """Return the named logger; records propagate to the JSON root handler.

    Host entry points call :func:`configure_root_logging` once; library
    modules only ask for loggers.
    """
    logger = logging.getLogger(name)
    logger.propagate = True
    return logger
