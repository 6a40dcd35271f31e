"""
Logging setup for the alert service.

Production emits one JSON object per line; every other environment gets
a short coloured console format. Both pick up the per-request context
bound by the HTTP middleware, and the JSON form also lifts known domain
attributes passed through ``extra=`` (user_id, incident_id, attempt…).

Usage:
    from backend.app.core.logging_config import setup_logging, get_logger

    setup_logging()
    logger = get_logger(__name__)
    logger.info("Location checked", extra={"user_id": "u-1", "match_count": 2})
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from backend.app.core.config import Settings, settings

_request_context: ContextVar[Dict[str, Any]] = ContextVar("geo_alert_request_context", default={})

# Attributes lifted from ``extra=`` into the JSON record
EXTRA_FIELDS = (
    "user_id", "incident_id", "check_id", "match_count",
    "attempt", "delay_s", "delivery_status", "webhook_url",
    "duration_ms", "status_code", "endpoint",
)

_LEVEL_COLOURS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}
_RESET = "\033[0m"


def bind_request_context(**fields: Any) -> Token:
    """Attach fields to every record logged in the current context."""
    return _request_context.set(dict(fields))


def reset_request_context(token: Token) -> None:
    _request_context.reset(token)


def get_request_context() -> Dict[str, Any]:
    return _request_context.get()


def _exception_summary(record: logging.LogRecord) -> Optional[Dict[str, str]]:
    if not record.exc_info or record.exc_info[1] is None:
        return None
    exc = record.exc_info[1]
    return {"type": type(exc).__name__, "message": str(exc)}


class JSONFormatter(logging.Formatter):
    """Single-line JSON records for log shippers."""

    def __init__(self, service: str = settings.APP_NAME) -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        context = get_request_context()
        if context:
            entry["context"] = context
        entry.update(
            (name, getattr(record, name)) for name in EXTRA_FIELDS if hasattr(record, name)
        )
        exc = _exception_summary(record)
        if exc:
            entry["exception"] = exc
        return json.dumps(entry, default=str)


class PrettyFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL [req-id] logger: message`` with a coloured level."""

    def format(self, record: logging.LogRecord) -> str:
        colour = _LEVEL_COLOURS.get(record.levelname, _RESET)
        request_id = get_request_context().get("request_id")
        tag = f" [{request_id[:8]}]" if request_id else ""

        line = (
            f"{colour}{self.formatTime(record, '%H:%M:%S')} {record.levelname:<8}{_RESET}"
            f"{tag} {record.name}: {record.getMessage()}"
        )
        exc = _exception_summary(record)
        if exc:
            line += f"\n  {exc['type']}: {exc['message']}"
        return line


def setup_logging(cfg: Optional[Settings] = None) -> None:
    """Install a single stdout handler on the root logger."""
    cfg = cfg or settings
    root = logging.getLogger()
    root.setLevel(getattr(logging, cfg.LOG_LEVEL.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter(cfg.APP_NAME) if cfg.is_production else PrettyFormatter())
    root.handlers[:] = [handler]

    for noisy in ("uvicorn.access", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if cfg.DATABASE_ECHO else logging.WARNING
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
