"""Structured logging utilities emitting JSON Lines payloads."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any, Mapping, MutableMapping, Optional
from uuid import uuid4

__all__ = [
    "ROOT_LOGGER_NAME",
    "JsonLogFormatter",
    "configure_json_logger",
    "flush_handlers",
    "generate_trace_id",
    "log_event",
]

ROOT_LOGGER_NAME = "plantag"


class JsonLogFormatter(logging.Formatter):
    """Render log records as single-line JSON documents."""

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        payload: MutableMapping[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": message,
        }

        trace_id = getattr(record, "trace_id", None)
        if trace_id:
            payload["trace_id"] = trace_id

        payload["event"] = getattr(record, "event", None) or message

        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, Mapping):
            payload.update(extra_fields)

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_json_logger(
    log_path: Path | None,
    level: int = logging.INFO,
    *,
    stream: Optional[IO[str]] = None,
) -> logging.Logger:
    """Attach a JSONL handler to the ``plantag`` logger.

    Existing handlers are closed and replaced, so calling this twice does not
    duplicate output. With neither ``log_path`` nor ``stream`` the logger is
    silenced through a :class:`logging.NullHandler`.
    """

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handler: logging.Handler
    if log_path is not None:
        log_path = Path(log_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path, encoding="utf-8")
        handler.setFormatter(JsonLogFormatter())
    elif stream is not None:
        handler = logging.StreamHandler(stream)
        handler.setFormatter(JsonLogFormatter())
    else:
        handler = logging.NullHandler()

    handler.setLevel(level)
    logger.addHandler(handler)
    return logger


def flush_handlers(logger: logging.Logger) -> None:
    """Flush every handler attached to ``logger``."""

    for handler in logger.handlers:
        handler.flush()


def generate_trace_id() -> str:
    """Return a unique identifier used to correlate the events of one item."""

    return uuid4().hex


def log_event(
    logger: logging.Logger,
    event: str,
    *,
    trace_id: str | None = None,
    level: int = logging.INFO,
    message: str | None = None,
    **fields: Any,
) -> str:
    """Emit a structured event on ``logger`` and return its trace id."""

    event_trace_id = trace_id or generate_trace_id()
    extra = {
        "trace_id": event_trace_id,
        "event": event,
        "extra_fields": fields,
    }
    logger.log(level, message or event, extra=extra)
    return event_trace_id
