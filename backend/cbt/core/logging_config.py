"""
Logging setup for the CBT service.

``setup_logging()`` is called once by the application at import time. Modules
log through ``logging.getLogger(__name__)``; pass structured values with
``extra={...}`` using the names in ``_EXTRA_FIELDS`` so the JSON output picks
them up.
"""
import json
import logging
import logging.config
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from cbt.core.config import settings

# Context variable for request ID correlation.
# Set by RequestLoggingMiddleware so every log entry emitted while handling a
# request carries the same request_id.
request_id_context: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Structured fields copied from ``extra=`` onto JSON log entries when present
_EXTRA_FIELDS = (
    "method",
    "path",
    "status_code",
    "duration_ms",
    "client_host",
    "user_id",
    "test_code_id",
    "error_id",
)


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record, for the production log pipeline.

    Request id and the whitelisted ``extra`` fields are included when present;
    error records also carry their source location.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_entry: Dict[str, Any] = {
            "timestamp": timestamp.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": settings.APP_NAME,
        }

        request_id = request_id_context.get()
        if request_id:
            log_entry["request_id"] = request_id

        for field in _EXTRA_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        # Add source location for error-level logs
        if record.levelno >= logging.ERROR:
            log_entry["source"] = f"{record.pathname}:{record.lineno}"

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


# Third-party loggers and the level they are held at regardless of LOG_LEVEL
_LIBRARY_LEVELS = {
    "sqlalchemy.engine": logging.WARNING,
    "sqlalchemy.pool": logging.WARNING,
    "alembic": logging.INFO,
}


def _console_logger(level: int) -> Dict[str, Any]:
    return {"level": level, "handlers": ["console"], "propagate": False}


def setup_logging() -> None:
    """
    Configure logging for the service.

    Production emits one JSON object per line; every other environment gets
    plain text. Service loggers live under ``cbt`` and follow ``LOG_LEVEL``.
    """
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    formatter = "json" if settings.ENV == "production" else "plain"

    loggers = {name: _console_logger(level) for name, level in _LIBRARY_LEVELS.items()}
    loggers["cbt"] = _console_logger(log_level)
    # Request lines are already logged by RequestLoggingMiddleware
    loggers["uvicorn.access"] = _console_logger(
        logging.INFO if settings.DEBUG else logging.WARNING
    )

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "plain": {
                    "format": "%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                },
                "json": {"()": JSONFormatter},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": log_level,
                    "formatter": formatter,
                    "stream": sys.stdout,
                },
            },
            "root": {"level": log_level, "handlers": ["console"]},
            "loggers": loggers,
        }
    )
