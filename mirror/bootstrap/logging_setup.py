"""Logging configuration for the mirror: JSON lines or plain text output.

Every logger lives under ``http_mirror``. Records carry the connection id of
the mirror thread that emitted them, and the JSON formatter serializes the
structured ``extra`` fields the mirror attaches to its events.
"""

import json
import logging
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

from mirror.domain.connection_id import (
    NO_CONNECTION,
    ROOT_LOGGER_NAME,
    ConnectionLoggerAdapter,
)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(connection_id)s] %(name)s :: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 5
REDACTED = "[REDACTED]"

SENSITIVE_PATTERNS = [
    re.compile(r"(?i)(authorization|token|key|signature|password|secret|api[_-]?key)"),
    re.compile(r"(?i)\bbearer\s+\S+"),
    re.compile(r"\b[A-Fa-f0-9]{32,}\b"),
    re.compile(r"\b[A-Za-z0-9+/]{32,}={0,2}\b"),
]

# Structured fields copied from records into JSON output.
EXTRA_KEYS = (
    "client",
    "limit_type",
    "bytes_in",
    "bytes_out",
    "header_complete",
    "framing",
    "transfer_encoding",
    "error_type",
    "error",
    "errno",
    "resource",
    "status",
    "host",
    "port",
    "log_destination",
    "log_level",
    "use_json",
    "destination",
    "socket_timeout",
    "shutdown_grace_seconds",
    "grace_seconds",
    "remaining_workers",
    "signal",
)

# Fields whose text can originate from the client's request bytes.
CLIENT_DERIVED_KEYS = frozenset({"transfer_encoding", "error"})


def redact_sensitive(value: str) -> str:
    """Replace values that look like credentials with a fixed marker."""
    if value and any(pattern.search(value) for pattern in SENSITIVE_PATTERNS):
        return REDACTED
    return value


class ConnectionIdFilter(logging.Filter):  # pylint: disable=too-few-public-methods
    """Ensure connection_id field exists in log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "connection_id"):
            record.connection_id = NO_CONNECTION
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line with sorted keys."""

    @staticmethod
    def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
        fields = {}
        for key in EXTRA_KEYS:
            if not hasattr(record, key):
                continue
            value = getattr(record, key)
            if key in CLIENT_DERIVED_KEYS and isinstance(value, str):
                value = redact_sensitive(value)
            fields[key] = value
        return fields

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "connection_id": getattr(record, "connection_id", NO_CONNECTION),
            "component": getattr(record, "component", "unknown"),
            "message": record.getMessage(),
        }
        if hasattr(record, "event"):
            log_data["event"] = record.event
        log_data.update(self._extra_fields(record))
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, sort_keys=True, default=str)


def _resolve_level(level_name: str) -> int:
    """Translate text level names into logging module numeric levels."""
    level = getattr(logging, level_name.upper(), None)
    return level if isinstance(level, int) else logging.INFO


def _open_handler(destination: Optional[str]) -> logging.Handler:
    if not destination or destination.lower() == "stdout":
        return logging.StreamHandler(sys.stdout)
    target_path = Path(destination)
    target_path.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(
        target_path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT
    )


def _build_handler(
    destination: Optional[str], level: int, use_json: bool = True
) -> logging.Handler:
    """Create a stdout or rotating file handler for the mirror logger."""
    handler = _open_handler(destination)
    handler.setLevel(level)
    formatter = (
        JsonFormatter(datefmt=DATE_FORMAT)
        if use_json
        else logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    )
    handler.setFormatter(formatter)
    handler.addFilter(ConnectionIdFilter())
    return handler


def configure_logging(
    level: str = "INFO", destination: Optional[str] = None, use_json: bool = True
) -> ConnectionLoggerAdapter:
    """Install a single handler on the ``http_mirror`` logger and return it.

    Calling this again replaces the previous handler, closing it first so
    rotated log files are not left open.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    numeric_level = _resolve_level(level)
    logger.setLevel(numeric_level)
    logger.propagate = False

    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.addHandler(_build_handler(destination, numeric_level, use_json))

    adapter = ConnectionLoggerAdapter(logger, {})
    adapter.info(
        "Logging configured",
        extra={
            "event": "logging_configured",
            "destination": destination or "stdout",
            "use_json": use_json,
        },
    )
    return adapter
