"""Logging configuration.

Installs a single root handler whose format follows ``settings.log_format``:
``json`` for structured production logs, ``text`` for local development.
"""

import json
import logging
import sys
from datetime import UTC, datetime

from src.config.settings import settings


class JsonFormatter(logging.Formatter):
    """Structured JSON formatter, one object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Configure the root logger from settings.

    Args:
        level: Log level name, defaults to ``settings.log_level``
        fmt: ``json`` or ``text``, defaults to ``settings.log_format``

    """
    level = (level or settings.log_level).upper()
    fmt = fmt or settings.log_format

    handler = logging.StreamHandler(sys.stdout)
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # SQL echo is controlled by database_echo, keep the engine logger quiet otherwise
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def mask_phone(phone: str | None) -> str:
    """Mask a phone number for log output, keeping the last four digits."""
    if not phone:
        return "<none>"
    if len(phone) <= 4:
        return "*" * len(phone)
    return "*" * (len(phone) - 4) + phone[-4:]
