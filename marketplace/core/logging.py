"""
Structured logging for the engine.

The engine only emits records on the ``marketplace`` logger tree; handlers,
levels and formatting belong to the host, which may call ``configure_logging``
once at startup. Records carry a context-bound correlation_id plus seller and
plan fields passed through ``extra=``.
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional, TextIO
from uuid import uuid4

LOGGER_NAME = "marketplace"

correlation_id_ctx_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# Copied from `extra=` into formatted output when present
_STRUCTURED_FIELDS = ("seller_id", "plan_id", "action", "actor", "error_code", "event_type")


def get_correlation_id(default: Optional[str] = None) -> Optional[str]:
    cid = correlation_id_ctx_var.get()
    return cid if cid is not None else default


@contextmanager
def correlation_scope(correlation_id: Optional[str] = None) -> Iterator[str]:
    """Bind a correlation_id (generated when omitted) for the duration of a block."""
    token = correlation_id_ctx_var.set(correlation_id or str(uuid4()))
    try:
        yield correlation_id_ctx_var.get()
    finally:
        correlation_id_ctx_var.reset(token)


def safe_truncate(value: Any, limit: int = 500) -> str:
    try:
        text = str(value)
    except Exception:
        return "<unserializable>"
    return text if len(text) <= limit else text[:limit] + "...<truncated>"


def _structured(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        field: getattr(record, field)
        for field in _STRUCTURED_FIELDS
        if getattr(record, field, None) is not None
    }


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "correlation_id", None) is None:
            record.correlation_id = get_correlation_id()
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None),
            **_structured(record),
        }
        return json.dumps(payload, default=str)


class PrettyFormatter(logging.Formatter):
    """One line per record: level, logger tag, correlation and domain fields."""

    def format(self, record: logging.LogRecord) -> str:
        parts = [self.formatTime(record), record.levelname, "[marketplace]"]
        cid = getattr(record, "correlation_id", None)
        if cid:
            parts.append(f"[cid={cid}]")
        parts.append(record.getMessage())
        parts.extend(f"{key}={value}" for key, value in _structured(record).items())
        return " ".join(parts)


def configure_logging(env: str = "development", stream: Optional[TextIO] = None) -> logging.Logger:
    """Attach a JSON (production) or pretty handler to the engine logger."""
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JsonFormatter() if env.lower() == "production" else PrettyFormatter())
    handler.addFilter(CorrelationIdFilter())

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO)
    logger.handlers = [handler]
    return logger


def log_event(
    level: str,
    msg: str,
    *,
    seller_id: Optional[str] = None,
    plan_id: Optional[str] = None,
    event_type: Optional[str] = None,
    error_code: Optional[str] = None,
    extra: Optional[Dict[str, object]] = None,
) -> None:
    """Emit one structured record; never touches handler configuration."""
    payload: Dict[str, Any] = {
        "correlation_id": get_correlation_id(),
        "seller_id": seller_id,
        "plan_id": plan_id,
        "event_type": event_type,
        "error_code": error_code,
    }
    for key, value in (extra or {}).items():
        payload[key] = safe_truncate(value)

    logger = logging.getLogger(LOGGER_NAME)
    getattr(logger, level, logger.info)(msg, extra=payload)
