"""Logging setup for the crmsync command line."""

import json
import logging
import os
import sys
from datetime import datetime, UTC
from typing import Any, Optional

LOG_LEVEL_ENV = "CRMSYNC_LOG_LEVEL"
LOG_JSON_ENV = "CRMSYNC_LOG_JSON"

_LOGGING_CONFIGURED = False


def _as_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return str(value).strip().lower() in {"1", "true", "yes", "y", "on"}


class JsonFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=True)


def setup_logging(verbose: bool = False, force: bool = False) -> None:
    """Configure the ``crmsync`` logger once per process.

    Level comes from CRMSYNC_LOG_LEVEL (default INFO) unless verbose forces
    DEBUG. CRMSYNC_LOG_JSON switches to JSON lines. Output goes to stderr so
    command output on stdout stays clean.
    """
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED and not force:
        return

    level_name = "DEBUG" if verbose else (os.getenv(LOG_LEVEL_ENV, "INFO").strip().upper() or "INFO")
    level = getattr(logging, level_name, logging.INFO)

    formatter: logging.Formatter
    if _as_bool(os.getenv(LOG_JSON_ENV)):
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")

    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(formatter)

    app_logger = logging.getLogger("crmsync")
    app_logger.handlers.clear()
    app_logger.addHandler(handler)
    app_logger.setLevel(level)

    _LOGGING_CONFIGURED = True
    logging.getLogger(__name__).debug("Logging configured at %s", level_name)
