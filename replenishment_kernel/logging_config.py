"""
Structured JSON logging for the replenishment kernel.

Every record leaves the ``replenishment_kernel`` logger hierarchy as one
JSON object per line::

    {"ts": "...", "level": "INFO", "logger": "replenishment_kernel.services.order_workflow",
     "message": "order_transitioned", "order_id": "ORD-1", "actor_id": "fm-1", ...}

Three sources feed a record, later ones never overwriting earlier ones:

1. The envelope (``ts``, ``level``, ``logger``, ``message``).
2. The entity context bound with ``LogContext`` (order, schedule,
   suggestion, actor, correlation and trace ids).
3. The ``extra={...}`` payload passed at the call site.

Exceptions logged with ``exc_info`` add ``exc_type``, ``exc_message``, the
error ``code`` of ``ReplenishmentError`` subclasses, and their public
attributes as ``exc_<name>``.
"""

__all__ = [
    "CONTEXT_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, TextIO

ROOT_LOGGER_NAME = "replenishment_kernel"

CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "actor_id",
    "order_id",
    "schedule_id",
    "suggestion_id",
    "trace_id",
)

_EMPTY: Mapping[str, str] = MappingProxyType({})
_context: ContextVar[Mapping[str, str]] = ContextVar("replenishment_log_context", default=_EMPTY)


# ---------------------------------------------------------------------------
# Entity context
# ---------------------------------------------------------------------------


def _merged(**fields: str | None) -> Mapping[str, str]:
    unknown = set(fields) - set(CONTEXT_FIELDS)
    if unknown:
        raise TypeError(f"Unknown log context field(s): {sorted(unknown)}")
    current = dict(_context.get())
    current.update({k: v for k, v in fields.items() if v is not None})
    return MappingProxyType(current)


class LogContext:
    """Entity ids attached to every record logged in the current context.

    Backed by a single ``ContextVar``, so threads and asyncio tasks each
    see their own bindings.
    """

    @staticmethod
    def set(**fields: str | None) -> None:
        """Add fields to the current context; None values are ignored."""
        _context.set(_merged(**fields))

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set(_EMPTY)

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[None]:
        """Bind fields for the duration of a ``with`` block.

        The previous context is restored on exit, including on error.
        """
        token = _context.set(_merged(**fields))
        try:
            yield
        finally:
            _context.reset(token)


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------

_RESERVED_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if not name.startswith("_") and name != "code":
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_context.get())

        for key, value in vars(record).items():
            if key not in _RESERVED_KEYS:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name`` under the ``replenishment_kernel`` hierarchy."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


_configured = False
_setup_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: TextIO | None = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach one JSON handler to the kernel logger hierarchy.

    Only the first call has any effect; later calls are ignored until
    ``reset_logging()``.
    """
    global _configured
    with _setup_lock:
        if _configured:
            return
        _configured = True

        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.setLevel(level)
        root.propagate = False
        target = handler or logging.StreamHandler(stream or sys.stderr)
        target.setFormatter(StructuredFormatter())
        root.addHandler(target)


def reset_logging() -> None:
    """Undo ``configure_logging``. Test suites only."""
    global _configured
    with _setup_lock:
        _configured = False
        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.handlers.clear()
        root.setLevel(logging.WARNING)
        root.propagate = True
