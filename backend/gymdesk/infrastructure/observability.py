"""Structured Logging - JSON formatter and setup for production observability.

Invariants:
    - All logs include timestamp, level, logger name, and message
    - Extra fields (method, path, status_code, area, error_code) surfaced when present
    - setup_logging() is idempotent: warm serverless invocations never stack handlers
    - File logging is best-effort: an unwritable logs area only produces a warning
"""

import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path

logger = logging.getLogger(__name__)

_EXTRA_FIELDS = (
    "method", "path", "status_code", "duration_ms", "area",
    "error_code", "attempt", "platform",
)
_HANDLER_MARKER = "_gymdesk_handler"
LOG_FILENAME = "gymdesk.log"


class JSONFormatter(logging.Formatter):
    """Format logs as JSON for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


def _build_formatter(fmt: str) -> logging.Formatter:
    if fmt == "json":
        return JSONFormatter()
    return logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")


def _marked_handlers(kind: str) -> list[logging.Handler]:
    return [
        h for h in logging.root.handlers
        if getattr(h, _HANDLER_MARKER, None) == kind
    ]


def setup_logging(level: str = "INFO", fmt: str = "json"):
    """Configure logging for the application."""
    for old in _marked_handlers("stream"):
        logging.root.removeHandler(old)
    handler = logging.StreamHandler()
    handler.setFormatter(_build_formatter(fmt))
    setattr(handler, _HANDLER_MARKER, "stream")
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))


def attach_file_logging(directory: Path | None, fmt: str = "json") -> bool:
    """Write logs to <directory>/gymdesk.log. Returns False when unavailable."""
    if directory is None:
        logger.warning("Logs area unavailable, file logging disabled")
        return False
    if _marked_handlers("file"):
        return True
    try:
        handler = RotatingFileHandler(
            Path(directory) / LOG_FILENAME, maxBytes=5 * 1024 * 1024, backupCount=3,
        )
    except OSError as e:
        logger.warning(
            f"Could not open log file in {directory}: {e}",
            extra={"area": "logs"},
        )
        return False
    handler.setFormatter(_build_formatter(fmt))
    setattr(handler, _HANDLER_MARKER, "file")
    logging.root.addHandler(handler)
    return True
