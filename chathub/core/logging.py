"""
Log output for the chathub service.

Every module logs through ``get_logger(__name__)``, so all records land in
the ``chathub`` logger tree configured here. Structured fields travel as
``extra={"extra_data": {...}}``; the webhook route and the normalizer use
them for the event name, the instance and the per-envelope counters.
``LOG_FORMAT=json`` emits one object per line for log shippers, anything
else emits ``key=value`` suffixed text for a terminal.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from chathub.core.config import Settings, get_settings

ROOT_LOGGER = "chathub"

BASE_FIELDS = ("timestamp", "level", "logger", "message", "module", "function", "line", "exception")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with the record's extra_data merged in."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in (getattr(record, "extra_data", None) or {}).items():
            # A webhook payload field named "message" must not hide the log message
            log_data[f"extra_{key}" if key in BASE_FIELDS else key] = value

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Single line per record; extra_data is appended as key=value pairs."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            fields = " ".join(f"{key}={value}" for key, value in extra_data.items())
            line = f"{line} | {fields}"
        return line


def setup_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """
    Attach a stdout handler to the ``chathub`` logger.

    Safe to call once per ``create_app``: earlier handlers are replaced, so
    test apps built with their own settings do not stack duplicate output.
    An unknown LOG_LEVEL falls back to INFO.
    """
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter() if settings.log_format.lower() == "json" else TextFormatter())

    logger.addHandler(handler)
    # uvicorn configures the root logger; keep chathub records out of it
    logger.propagate = False

    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Logger inside the chathub tree; pass ``__name__`` from package modules."""
    return logging.getLogger(name)
