import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

ROOT_LOGGER = "imgpress"

# Set by RequestContextMiddleware; copied into worker threads by asyncio.to_thread
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


class StructuredFormatter(logging.Formatter):
    """One JSON object per line.

    Fields:
    - severity, message, timestamp (ISO 8601, UTC), logger
    - request_id: explicit `extra` wins, else the current request's id
    - context: structured extras passed as extra={"context": {...}}
    - traceback: formatted exception, if any
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "severity": record.levelname,
            "message": record.getMessage(),
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "logger": record.name,
        }

        request_id = getattr(record, "request_id", None) or request_id_var.get()
        if request_id:
            entry["request_id"] = request_id

        context = getattr(record, "context", None)
        if context:
            entry["context"] = context

        if record.exc_info and record.exc_info[0]:
            entry["traceback"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Route the imgpress namespace to stdout as JSON lines.

    Idempotent: replaces any handler installed by a previous call.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter())

    logger = logging.getLogger(ROOT_LOGGER)
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.propagate = False

    for noisy, noisy_level in (
        ("uvicorn.access", logging.WARNING),
        ("sqlalchemy.engine", logging.WARNING),
        ("passlib", logging.ERROR),
    ):
        logging.getLogger(noisy).setLevel(noisy_level)

    return logger


def get_logger(name: str) -> logging.Logger:
    """`get_logger("pipeline")` -> the "imgpress.pipeline" logger."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
