"""Structured logging configuration.

JSON (or text) log records carrying the request correlation id and, while
an escalation is being evaluated or acted on, the deadline event id.
"""

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

# Correlation ID of the HTTP request being served (set by middleware)
correlation_id_ctx: ContextVar[str | None] = ContextVar("correlation_id", default=None)

# Deadline event currently held by the per-event writer
event_id_ctx: ContextVar[str | None] = ContextVar("event_id", default=None)


@contextmanager
def bind_event_id(event_id: str) -> Iterator[None]:
    """Attach ``event_id`` to every log record emitted inside the block."""
    token = event_id_ctx.set(event_id)
    try:
        yield
    finally:
        event_id_ctx.reset(token)


def bound_context() -> dict[str, str]:
    """Context ids bound to the current task, omitting unset ones."""
    context = {
        "correlation_id": correlation_id_ctx.get(),
        "event_id": event_id_ctx.get(),
    }
    return {key: value for key, value in context.items() if value}


class _ServiceFormatter(logging.Formatter):
    """Base for formatters that stamp records with the service name."""

    def __init__(self, service_name: str = "compliance-escalation"):
        super().__init__()
        self.service_name = service_name

    @staticmethod
    def record_time(record: logging.LogRecord) -> datetime:
        """When the record was created, in UTC."""
        return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JsonFormatter(_ServiceFormatter):
    """One JSON object per record.

    Keys: timestamp, level, service, message, logger, the bound context ids,
    any StructuredLogger fields, plus exception and location for errors.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.record_time(record).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "message": record.getMessage(),
            "logger": record.name,
            **bound_context(),
            **getattr(record, "extra_fields", {}),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if record.levelno >= logging.ERROR:
            payload["location"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }
        return json.dumps(payload, default=str)


class TextFormatter(_ServiceFormatter):
    """Single-line development format.

    ``<time> - <service> - <level> - [<correlation_id>/<event_id>] - <message> k=v``
    """

    def format(self, record: logging.LogRecord) -> str:
        context = bound_context()
        ids = context.get("correlation_id", "-")
        if "event_id" in context:
            ids = f"{ids}/{context['event_id']}"
        parts = [
            self.record_time(record).strftime("%Y-%m-%d %H:%M:%S"),
            self.service_name,
            record.levelname,
            f"[{ids}]",
            record.getMessage(),
        ]
        line = " - ".join(parts)

        extra_fields = getattr(record, "extra_fields", None) or {}
        if extra_fields:
            line += " " + " ".join(f"{key}={value}" for key, value in extra_fields.items())
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    log_format: str = "json",
    log_level: str = "INFO",
    service_name: str = "compliance-escalation",
) -> None:
    """Configure structured logging for the application.

    Args:
        log_format: 'json' for structured logging, 'text' for human-readable
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        service_name: Service name to include in logs
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    if log_format.lower() == "json":
        formatter = JsonFormatter(service_name=service_name)
    else:
        formatter = TextFormatter(service_name=service_name)

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("apscheduler.executors.default").setLevel(logging.WARNING)


class StructuredLogger:
    """Logger wrapper that supports structured extra fields."""

    def __init__(self, name: str):
        self._logger = logging.getLogger(name)

    def _log(
        self,
        level: int,
        msg: str,
        extra_fields: dict[str, Any] | None = None,
        exc_info: bool = False,
    ) -> None:
        record_extra = {"extra_fields": extra_fields} if extra_fields else {}
        self._logger.log(level, msg, extra=record_extra, exc_info=exc_info)

    def debug(self, msg: str, **extra_fields: Any) -> None:
        self._log(logging.DEBUG, msg, extra_fields or None)

    def info(self, msg: str, **extra_fields: Any) -> None:
        self._log(logging.INFO, msg, extra_fields or None)

    def warning(self, msg: str, exc_info: bool = False, **extra_fields: Any) -> None:
        self._log(logging.WARNING, msg, extra_fields or None, exc_info=exc_info)

    def error(self, msg: str, **extra_fields: Any) -> None:
        self._log(logging.ERROR, msg, extra_fields or None)

    def exception(self, msg: str, **extra_fields: Any) -> None:
        """Log at ERROR with the active exception's traceback."""
        self._log(logging.ERROR, msg, extra_fields or None, exc_info=True)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        StructuredLogger instance
    """
    return StructuredLogger(name)
