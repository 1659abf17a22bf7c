"""Structured logging configuration.

This module provides structured logging with JSON formatting for production
environments and human-readable formatting for development. Both the API
and the CLI call ``setup_logging`` once at startup.

Security Impact:
    - Only identifiers (patient UID, eye selector) are added as context;
      clinical record contents are never logged
    - Structured format enables better log analysis
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO

logger = logging.getLogger(__name__)

# LogRecord attributes copied into JSON output when set via ``extra=``
CONTEXT_FIELDS = ("request_id", "endpoint", "patient_uid", "eye", "category")


class StructuredFormatter(logging.Formatter):
    """Structured JSON formatter for logs.

    Formats log records as one JSON object per line for parsing in
    production environments.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Parameters:
            record: Log record to format

        Returns:
            JSON string representation of log record
        """
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        return json.dumps(log_data, default=str)


def setup_logging(use_json: bool = False, log_level: str = "INFO", stream: Optional[TextIO] = None):
    """Setup application logging.

    Parameters:
        use_json: Use JSON formatting (for production)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        stream: Output stream (defaults to stdout)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(level)

    if use_json:
        formatter = StructuredFormatter()
    else:
        # Human-readable format for development
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # Set levels for third-party loggers
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("fastapi").setLevel(logging.WARNING)
