"""
Structured JSON logging for the ``billing`` logger namespace.

Each record becomes one JSON line holding the timestamp, level, logger name
and event message, followed by the correlation fields bound through
``LogContext.bind()`` and the record's ``extra`` fields.  A ``BillingError``
passed as ``exc_info`` also contributes its code and structured attributes.

Services log event names, never sentences::

    logger.info("invoice_generated", extra={"invoice_id": str(invoice.id)})
"""

__all__ = [
    "NAMESPACE",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
]

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from typing import Any, TextIO

from billing_kernel.exceptions import BillingError

NAMESPACE = "billing"

_bound: ContextVar[dict[str, str]] = ContextVar("billing_log_context", default={})


class LogContext:
    """Correlation fields attached to every record logged in the current task."""

    FIELDS = frozenset({"correlation_id", "actor_id", "school_id", "employee_id", "job_id"})

    @staticmethod
    def current() -> dict[str, str]:
        return dict(_bound.get())

    @classmethod
    @contextmanager
    def bind(cls, **fields: object) -> Iterator[None]:
        """
        Add ``fields`` for the duration of the ``with`` block.

        Nested binds layer on top of the outer ones; leaving a block restores
        exactly what was bound before it.  None values are ignored.
        """
        unknown = set(fields) - cls.FIELDS
        if unknown:
            raise ValueError(f"Unknown log context field(s): {sorted(unknown)}")
        layered = dict(_bound.get())
        layered.update((key, str(value)) for key, value in fields.items() if value is not None)
        token = _bound.set(layered)
        try:
            yield
        finally:
            _bound.reset(token)


_RECORD_ATTRIBUTES = frozenset(vars(logging.makeLogRecord({}))) | {
    "message",
    "asctime",
    "taskName",
}


def _json_default(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_bound.get())
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and key not in payload
        )
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record))
        return json.dumps(payload, default=_json_default)

    def _exception_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        exc = record.exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        if isinstance(exc, BillingError):
            fields["exc_code"] = exc.code
            fields.update(
                (f"exc_{name}", value)
                for name, value in vars(exc).items()
                if not name.startswith("_")
            )
        fields["traceback"] = self.formatException(record.exc_info)
        return fields


def get_logger(name: str) -> logging.Logger:
    """Logger ``billing.<name>``."""
    return logging.getLogger(f"{NAMESPACE}.{name}")


_handler: logging.Handler | None = None


def configure_logging(
    level: int | str = logging.INFO,
    stream: TextIO | None = None,
) -> logging.Logger:
    """
    Send the billing namespace to a single JSON handler on ``stream``.

    A repeated call swaps out the handler installed by the previous one, so
    scripts and the test suite can reconfigure without stacking handlers.
    Handlers added by anyone else are left in place.
    """
    global _handler
    root = logging.getLogger(NAMESPACE)
    if _handler is not None:
        root.removeHandler(_handler)
    _handler = logging.StreamHandler(stream or sys.stderr)
    _handler.setFormatter(StructuredFormatter())
    root.addHandler(_handler)
    root.setLevel(level)
    root.propagate = False
    return root
