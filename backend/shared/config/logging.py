"""
Structured logging for the sync service.

Standard library logging with a logger subclass that accepts keyword
context (``logger.info("Order applied", order_id=...)``). Production emits
one JSON object per line; development gets a coloured single-line format.
Both include the request correlation id when one is bound.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from shared.config.settings import settings

SERVICE_NAME = "pos-sync"


def _record_time(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


def _request_id(record: logging.LogRecord) -> str | None:
    request_id = getattr(record, "request_id", None)
    if request_id and request_id != "-":
        return request_id
    return None


class StructuredFormatter(logging.Formatter):
    """JSON formatter, parseable by log aggregation tools."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": _record_time(record).isoformat(),
            "service": SERVICE_NAME,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = _request_id(record)
        if request_id:
            log_data["request_id"] = request_id

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            log_data["data"] = extra_data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if settings.debug:
            log_data["source"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Human-readable formatter for local development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    DIM = "\033[2m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = _record_time(record).astimezone().strftime("%H:%M:%S")

        request_id = _request_id(record)
        prefix = f"{self.DIM}[{request_id[:8]}]{self.RESET} " if request_id else ""

        message = (
            f"{color}[{timestamp}] {record.levelname:8}{self.RESET} "
            f"{prefix}{record.name}: {record.getMessage()}"
        )

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            message += " (" + " | ".join(f"{k}={v}" for k, v in extra_data.items()) + ")"

        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"

        return message


class StructuredLogger(logging.Logger):
    """Logger whose level methods accept arbitrary keyword context."""

    def _log_with_data(
        self,
        level: int,
        msg: str,
        args: tuple,
        exc_info: Any = None,
        extra: dict | None = None,
        **kwargs: Any,
    ) -> None:
        if not self.isEnabledFor(level):
            return
        extra = dict(extra or {})
        extra["extra_data"] = kwargs or None
        super()._log(level, msg, args, exc_info=exc_info, extra=extra, stacklevel=3)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.DEBUG, msg, args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.INFO, msg, args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.WARNING, msg, args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.ERROR, msg, args, **kwargs)

    def critical(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.CRITICAL, msg, args, **kwargs)


logging.setLoggerClass(StructuredLogger)


def setup_logging() -> None:
    """
    Configure the root logger. Call once at application startup.
    """
    # Imported lazily: correlation imports this module
    from shared.infrastructure.correlation import CorrelationIdFilter

    log_level = logging.DEBUG if settings.debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.addFilter(CorrelationIdFilter())

    if settings.environment == "production":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(DevelopmentFormatter())

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()
    root.addHandler(handler)

    # Third-party noise
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.database_echo else logging.WARNING
    )


def get_logger(name: str) -> StructuredLogger:
    """
    Get a logger instance with the given name.

    Usage:
        from shared.config.logging import get_logger
        logger = get_logger(__name__)

        logger.info("Push applied", branch_id=1, processed_orders=3)
        logger.error("Deduction failed", order_id="9c1e...", exc_info=True)
    """
    return logging.getLogger(name)  # type: ignore[return-value]


def mask_user_id(user_id: int | str | None) -> str:
    """Shorten a user id for security-sensitive log lines."""
    if user_id is None:
        return "<no-user>"
    user_str = str(user_id)
    if len(user_str) <= 4:
        return user_str[0] + "***"
    return f"{user_str[:4]}***"


# Pre-configured loggers for common modules
api_logger = get_logger("pos_sync")
sync_logger = get_logger("pos_sync.sync")
inventory_logger = get_logger("pos_sync.inventory")
auth_logger = get_logger("pos_sync.auth")
