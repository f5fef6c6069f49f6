"""
Structured JSON logging for the consolidation engine.

Every module logs through ``get_logger("<area>.<module>")``, which hangs
the logger under the ``consolidation`` tree.  One JSON object is written
per record: timestamp, level, logger and message, then the run-scoped
fields held by ``LogContext``, then the record's ``extra`` fields.
Exceptions derived from ``ConsolidationError`` contribute their ``code``
and public attributes as ``exc_*`` keys.
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any

__all__ = [
    "LogContext",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "reset_logging",
]

ROOT_LOGGER_NAME = "consolidation"

CONTEXT_FIELDS = ("run_id", "group_id", "period_ref", "actor_id")

_context: ContextVar[dict[str, str]] = ContextVar("consolidation_log_context", default={})


class LogContext:
    """Run-scoped fields stamped on every record; safe across threads and tasks."""

    @staticmethod
    def set(**fields: str | None) -> None:
        """Update known fields; ``None`` leaves a field as it is."""
        _context.set(_merged(_context.get(), fields))

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set({})

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[None]:
        token = _context.set(_merged(_context.get(), fields))
        try:
            yield
        finally:
            _context.reset(token)


def _merged(current: dict[str, str], fields: dict[str, str | None]) -> dict[str, str]:
    merged = dict(current)
    for name in CONTEXT_FIELDS:
        value = fields.get(name)
        if value is not None:
            merged[name] = str(value)
    return merged


_RESERVED = frozenset(vars(logging.makeLogRecord({}))) | {"message", "taskName"}


def _to_json(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    # Decimal and UUID keep their exact text form.
    return str(value)


class StructuredFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED:
                payload.setdefault(key, value)

        exc = record.exc_info[1] if record.exc_info else None
        if exc is not None:
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            code = getattr(exc, "code", None)
            if code is not None:
                payload["exc_code"] = code
            payload.update(
                (f"exc_{name}", value)
                for name, value in vars(exc).items()
                if not name.startswith("_") and name != "code"
            )
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_to_json)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


_state_lock = threading.Lock()
_handler_installed = False


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Install one JSON handler on the ``consolidation`` tree; later calls are no-ops."""
    global _handler_installed
    with _state_lock:
        if _handler_installed:
            return
        _handler_installed = True

    target = handler or logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)
    root.addHandler(target)
    root.propagate = False


def reset_logging() -> None:
    """Undo ``configure_logging``. Test use only."""
    global _handler_installed
    with _state_lock:
        _handler_installed = False
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.setLevel(logging.WARNING)
    root.propagate = True
