"""
Structured JSON logging for the quotation kernel.

Every record under the ``quote_kernel`` logger becomes one JSON object:
timestamp, level, logger and event name, the bound request context, any
``extra={...}`` fields, and for failures the exception's structured
attributes (``exc_code``, ``exc_from_status``, ...).

Context is bound per call, not per process:

    with LogContext.bind(document_id=quotation_id, actor_id=user_id):
        logger.info("conversion_started")
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from enum import Enum
from types import MappingProxyType
from typing import IO, Any

__all__ = [
    "CONTEXT_FIELDS",
    "LogContext",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "reset_logging",
]

ROOT_LOGGER = "quote_kernel"

CONTEXT_FIELDS = ("correlation_id", "document_id", "actor_id")

_EMPTY: Mapping[str, str] = MappingProxyType({})
_context: ContextVar[Mapping[str, str]] = ContextVar("quote_kernel_log_context", default=_EMPTY)


class LogContext:
    """Request-scoped fields stamped on every record (per thread and per task)."""

    @staticmethod
    @contextmanager
    def bind(**fields: object) -> Iterator[None]:
        """Add fields for the duration of the block.  Unknown names and None are ignored."""
        merged = dict(_context.get())
        for name, value in fields.items():
            if name in CONTEXT_FIELDS and value is not None:
                merged[name] = str(value)
        token = _context.set(MappingProxyType(merged))
        try:
            yield
        finally:
            _context.reset(token)

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set(_EMPTY)


# Attributes every LogRecord carries; anything else came from ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "taskName"}


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    # Kernel errors keep their context as public attributes.
    for name, value in vars(exc).items():
        if not name.startswith("_"):
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON line per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context.get(),
        }
        for name, value in vars(record).items():
            if name not in _RECORD_ATTRS:
                payload.setdefault(name, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_jsonable)


def get_logger(name: str) -> logging.Logger:
    """``get_logger("services.conversion")`` -> ``quote_kernel.services.conversion``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def _is_kernel_handler(handler: logging.Handler) -> bool:
    return isinstance(handler.formatter, StructuredFormatter)


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: IO[str] | None = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the ``quote_kernel`` logger.

    Idempotent: once a structured handler is attached, later calls change
    nothing until ``reset_logging()``.
    """
    root = logging.getLogger(ROOT_LOGGER)
    if any(_is_kernel_handler(h) for h in root.handlers):
        return
    target = handler or logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    root.addHandler(target)
    root.setLevel(level)
    root.propagate = False


def reset_logging() -> None:
    """Detach every handler from ``quote_kernel``.  Tests only."""
    root = logging.getLogger(ROOT_LOGGER)
    for h in list(root.handlers):
        root.removeHandler(h)
    root.setLevel(logging.WARNING)
    root.propagate = True
