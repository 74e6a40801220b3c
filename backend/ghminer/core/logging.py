"""
Structured Logging Configuration.

Supports two modes:
- text: Human-readable format for interactive runs
- json: One JSON object per line, for log shippers

Set the LOG_FORMAT setting (or environment variable) to "json" to switch.
"""

import json
import logging
import sys
from typing import Any, Dict, Optional

from ghminer.core.tracing import TracingContext

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class JSONFormatter(logging.Formatter):
    """
    Formatter that outputs JSON strings with tracing context.

    Includes correlation_id, request_id, repo and run_id from TracingContext
    so a single build or request can be filtered out of a mixed log stream.
    """

    def format(self, record: logging.LogRecord) -> str:
        ctx = TracingContext.get()

        log_record: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "line": record.lineno,
            "thread": record.threadName,
        }
        log_record.update(ctx)

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record)


def setup_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Setup logging for the command line entry points.

    Falls back to the LOG_FORMAT / LOG_LEVEL settings when arguments are omitted.
    """
    root_logger = logging.getLogger()

    # Avoid adding multiple handlers
    if root_logger.handlers:
        return

    if level is None or log_format is None:
        from ghminer.config import get_settings

        settings = get_settings()
        level = level or settings.LOG_LEVEL
        log_format = log_format or settings.LOG_FORMAT

    root_logger.setLevel(level.upper())

    handler = logging.StreamHandler(sys.stdout)
    if log_format.lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    root_logger.addHandler(handler)

    # Set lower level for noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("git").setLevel(logging.WARNING)
