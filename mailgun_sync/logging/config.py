"""Structured JSON logging for the webhook API, jobs and CLI."""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

from mailgun_sync.config import Settings, settings

# Keys a `context` dict may not overwrite
RESERVED_FIELDS = frozenset({"timestamp", "level", "logger", "message", "service"})

# Third-party loggers held at WARNING unless the app itself logs at DEBUG
NOISY_LOGGERS = ("botocore", "aiobotocore", "aioboto3", "httpx", "httpcore", "mangum")


class JSONFormatter(logging.Formatter):
    """
    Render each record as one JSON object per line.

    Fields: timestamp (UTC ISO 8601), level, logger, message, an optional
    service name, the correlation_id set by the request middleware and every
    key of the `context` dict passed via `extra`. Context values that are not
    JSON types (Decimal timestamps from DynamoDB, datetimes, enums) are
    written with str().
    """

    def __init__(self, service: str | None = None) -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.service:
            entry["service"] = self.service

        correlation_id = getattr(record, "correlation_id", None)
        if correlation_id:
            entry["correlation_id"] = correlation_id

        context = getattr(record, "context", None)
        if isinstance(context, dict):
            for key, value in context.items():
                entry[f"context_{key}" if key in RESERVED_FIELDS else key] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        if record.levelno <= logging.DEBUG:
            entry["location"] = f"{record.pathname}:{record.lineno} in {record.funcName}"

        return json.dumps(entry, default=str)


def configure_logging(config: Settings | None = None) -> None:
    """
    Send JSON logs from the root logger to stdout.

    Safe to call more than once: existing root handlers are replaced.

    Args:
        config: Settings providing log_level and api_title (defaults to global settings)
    """
    config = config or settings
    level = logging.getLevelName(config.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter(service=config.api_title))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else logging.WARNING)

    root.info("Logging configured", extra={"context": {"log_level": logging.getLevelName(level)}})


def get_logger(name: str) -> logging.Logger:
    """Module logger; call with __name__."""
    return logging.getLogger(name)
