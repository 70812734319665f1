"""
Structured Logging Configuration Module

JSON-formatted structured logging for ledger operations. Loggers live under
the "bank_ledger" namespace (bank_ledger.transactions, bank_ledger.loans, ...).
Structured fields ride on the log record as attributes, set through the
standard ``extra`` mapping by log_action().
"""

import logging
import json
from datetime import datetime, timezone
from typing import Optional

ROOT_LOGGER = "bank_ledger"

# Record attributes copied into the JSON entry when present
STRUCTURED_FIELDS = ("user_id", "action", "resource", "extra")

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per record, structured fields included when set"""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in STRUCTURED_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = value

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def _build_handler(log_format: str) -> logging.Handler:
    if log_format == "json":
        formatter = JSONFormatter()
    elif log_format == "text":
        formatter = logging.Formatter(TEXT_FORMAT)
    else:
        raise ValueError(f"Unknown log format {log_format!r}, expected 'json' or 'text'")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    return handler


def setup_logging(level: str = "INFO", logger_name: str = ROOT_LOGGER,
                  log_format: str = "json") -> logging.Logger:
    """
    Attach a single stream handler to the ledger's logger namespace.

    Calling it again replaces the previous handler.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        logger_name: Name of the logger
        log_format: "json" for structured output, "text" for plain lines

    Returns:
        Configured logger instance

    Raises:
        ValueError: If log_format is neither "json" nor "text"
    """
    handler = _build_handler(log_format)
    logger = logging.getLogger(logger_name)

    for existing in logger.handlers[:]:
        logger.removeHandler(existing)

    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = False

    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Get logger instance"""
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               user_id: Optional[str] = None, action: Optional[str] = None,
               resource: Optional[str] = None, extra: Optional[dict] = None):
    """
    Log a ledger event with structured fields.

    Empty fields are left off the record. The record's source location is the
    caller of log_action, not this module.
    """
    fields = {"user_id": user_id, "action": action, "resource": resource, "extra": extra}
    logger.log(
        getattr(logging, level.upper()), message,
        extra={name: value for name, value in fields.items() if value},
        stacklevel=2,
    )
