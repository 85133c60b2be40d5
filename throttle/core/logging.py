"""Logging setup for the throttle service.

- request_id correlation through contextvars
- client addresses replaced by their hash, credentials redacted
- JSON or plain formatting to stdout or a (rotating) file
"""

from __future__ import annotations

import hashlib
import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Mapping

from throttle.core.config import LogSettings, settings

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

# Fields carrying a client address; logged as a hash so events still correlate.
HASHED_KEYS: frozenset[str] = frozenset(
    {"identifier", "client_ip", "x-forwarded-for", "x-real-ip"}
)

REDACTED_KEYS: frozenset[str] = frozenset(
    {
        "authorization",
        "x-api-key",
        "api_key",
        "token",
        "secret",
        "password",
        "cookie",
        "set-cookie",
        "cache_url",
    }
)

_RECORD_ATTRS = frozenset(vars(LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "taskName",
}


def set_request_id(request_id: str | None) -> None:
    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def hash_identifier(identifier: str) -> str:
    """Hash a client identifier for logging without exposing it."""
    return hashlib.sha256(identifier.encode()).hexdigest()[:16]


def _scrub(key: str, value: Any) -> Any:
    name = key.lower()
    if name in HASHED_KEYS:
        return hash_identifier(str(value))
    if name in REDACTED_KEYS:
        return "[REDACTED]"
    if isinstance(value, Mapping):
        return {k: _scrub(k, v) for k, v in value.items()}
    return value


def _extra_fields(record: LogRecord, *, scrub: bool = True) -> dict[str, Any]:
    """Return the ``extra=`` fields of a record."""
    return {
        key: _scrub(key, value) if scrub else value
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


class RequestIdFilter(logging.Filter):
    """Attach request_id from context when absent on the record."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id
        return True


class SensitiveDataFilter(logging.Filter):
    """Scrub client addresses and credentials on the record before any formatter runs."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if not getattr(record, "_scrubbed", False):
            for key, value in _extra_fields(record).items():
                setattr(record, key, value)
            record._scrubbed = True
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record: level, logger, message, request_id and extras."""

    def format(self, record: LogRecord) -> str:  # noqa: D401
        record_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            record_data["request_id"] = request_id

        record_data.update(_extra_fields(record, scrub=not getattr(record, "_scrubbed", False)))

        if record.exc_info:
            record_data["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(record_data, default=str)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or "logs/throttle.log")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if log_settings.max_bytes:
        return RotatingFileHandler(
            file_path,
            maxBytes=log_settings.max_bytes,
            backupCount=log_settings.backup_count,
            encoding="utf-8",
        )
    return logging.FileHandler(file_path, encoding="utf-8")


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Configure the root logger from ``LOG_*`` settings.

    Args:
        log_settings: Optional log settings; defaults to global settings if omitted.
    """
    cfg = log_settings or settings.log

    handler = _build_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())

    if cfg.format.lower() == "plain":
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    else:
        handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    # Avoid double logging from uvicorn if it gets re-configured
    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.access").propagate = False
