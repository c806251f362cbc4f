"""
Centralized structured logging for the record store.
Uses Python's standard logging with JSON formatting for production.

Keyword arguments passed to any logger call become the record's structured
data:

    logger.info("Rows deleted", model="products", affected=3)

Every record emitted while a delete/undelete propagates carries the
operation ID of the outermost call, so a whole cascade tree can be followed.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from shared.config.settings import settings


def _operation_id(record: logging.LogRecord) -> str | None:
    operation_id = getattr(record, "operation_id", None)
    if operation_id and operation_id != "-":
        return operation_id
    return None


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter, one object per line.
    Outputs logs in a format easily parseable by log aggregation tools.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        operation_id = _operation_id(record)
        if operation_id:
            log_data["operation_id"] = operation_id

        data = getattr(record, "extra_data", None)
        if data:
            log_data["data"] = data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Source location in debug mode
        if settings.debug:
            log_data["source"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Human-readable, colored single-line formatter."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"
    DIM = "\033[2m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        parts = [f"{color}[{timestamp}] {record.levelname:8}{self.RESET}"]
        operation_id = _operation_id(record)
        if operation_id:
            # First 8 characters are enough to tell trees apart
            parts.append(f"{self.DIM}[{operation_id[:8]}]{self.RESET}")
        parts.append(f"{record.name}: {record.getMessage()}")
        message = " ".join(parts)

        data = getattr(record, "extra_data", None)
        if data:
            message += " (" + " | ".join(f"{k}={v}" for k, v in data.items()) + ")"

        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"

        return message


class StructuredLogger(logging.Logger):
    """
    Logger that accepts structured data as keyword arguments.

    The standard keywords (exc_info, extra, stack_info, stacklevel) keep
    their meaning; everything else is collected into record.extra_data.
    """

    def _log(
        self,
        level: int,
        msg: object,
        args: Any,
        exc_info: Any = None,
        extra: dict[str, Any] | None = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        **data: Any,
    ) -> None:
        extra = dict(extra or {})
        extra["extra_data"] = data or None
        super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=extra,
            stack_info=stack_info,
            stacklevel=stacklevel + 1,
        )


# Set custom logger class
logging.setLoggerClass(StructuredLogger)


def setup_logging(level: int | None = None, json_output: bool | None = None) -> None:
    """
    Configure the root logger. Call this once at application startup.

    Args:
        level: Log level (default: DEBUG when settings.debug, else INFO).
        json_output: Use the JSON formatter (default: in production).
    """
    # Import here to avoid circular imports
    from shared.infrastructure.correlation import CorrelationIdFilter

    if level is None:
        level = logging.DEBUG if settings.debug else logging.INFO
    if json_output is None:
        json_output = settings.environment == "production"

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(StructuredFormatter() if json_output else DevelopmentFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    # SQL echo goes through the sqlalchemy.engine logger
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.sql_echo else logging.WARNING
    )


def get_logger(name: str) -> StructuredLogger:
    """
    Get a logger instance with the given name.

    Usage:
        from shared.config.logging import get_logger
        logger = get_logger(__name__)

        logger.info("Rows soft deleted", model="products", affected=3)
        logger.error("Cascade relation failed", relation="branch_prices", exc_info=True)
    """
    return logging.getLogger(name)  # type: ignore
