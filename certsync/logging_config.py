"""JSON logging configuration for certsync."""

import json
import logging
import os
import sys
from datetime import datetime, timezone

# Extra record attributes copied into the JSON payload when present
EXTRA_FIELDS = ("owner", "object_id", "content_address", "credential_id")


class JsonFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record):
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for k in EXTRA_FIELDS:
            if hasattr(record, k):
                payload[k] = getattr(record, k)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(
    log_file: str = None,
    log_level: str = None,
    stream=None,
):
    """Configure logging with JSON formatter.

    Args:
        log_file: Path to log file. Defaults to CERTSYNC_LOG_FILE env var or 'certsync_debug.log'.
        log_level: Log level. Defaults to CERTSYNC_LOG_LEVEL env var or 'INFO'.
        stream: Console stream. Defaults to stdout.
    """
    # Console handler
    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setFormatter(JsonFormatter())

    # File handler for debugging (always append)
    log_file = log_file or os.getenv("CERTSYNC_LOG_FILE", "certsync_debug.log")
    file_handler = logging.FileHandler(log_file, mode='a')
    file_handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    log_level = (log_level or os.getenv("CERTSYNC_LOG_LEVEL", "INFO")).upper()
    root.setLevel(getattr(logging, log_level, logging.INFO))
    root.handlers = [console_handler, file_handler]
