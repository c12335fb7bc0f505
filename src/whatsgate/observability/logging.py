"""Structured JSON logging with request context."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from .correlation import get_client_address, get_correlation_id

_ROOT_LOGGER = "whatsgate"


class JsonFormatter(logging.Formatter):
    """One JSON object per line, enriched with the request context."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = get_correlation_id()
        if correlation_id:
            log_obj["correlationId"] = correlation_id

        client_address = get_client_address()
        if client_address:
            log_obj["client"] = client_address

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_obj.update(record.extra_fields)

        return json.dumps(log_obj, default=str, ensure_ascii=False)


def configure_logging(level: str = "INFO") -> None:
    """Attach the JSON handler to the package root logger (idempotent)."""
    root = logging.getLogger(_ROOT_LOGGER)
    if not any(isinstance(h.formatter, JsonFormatter) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JsonFormatter())
        root.addHandler(handler)
    root.setLevel(level.upper())


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the package root so one handler serves every module."""
    if not name.startswith(_ROOT_LOGGER):
        name = f"{_ROOT_LOGGER}.{name}"
    configure_logging()
    return logging.getLogger(name)
