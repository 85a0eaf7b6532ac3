"""
Structured logging for the gateway.

Log calls take keyword fields next to the message:

    logger.info("User registered", identity="alice", session_id=session_id)

The fields travel on the record as ``extra_data``. Production renders one
JSON object per line; development renders a coloured single line. Records
written while a connection is being handled carry its id
(see shared.infrastructure.correlation).
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from shared.config.settings import Settings

# Loggers that are too chatty at DEBUG for a gateway with many sockets
_QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "uvicorn.error": logging.INFO,
    "websockets": logging.INFO,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}


def _record_fields(record: logging.LogRecord) -> tuple[str | None, dict[str, Any]]:
    """Connection id and structured fields attached to a record."""
    connection_id = getattr(record, "connection_id", None)
    if connection_id == "-":
        connection_id = None
    return connection_id, getattr(record, "extra_data", None) or {}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, for log aggregation."""

    def __init__(self, include_source: bool = False):
        super().__init__()
        self.include_source = include_source

    def format(self, record: logging.LogRecord) -> str:
        connection_id, fields = _record_fields(record)
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if connection_id:
            entry["connection_id"] = connection_id
        if fields:
            entry["data"] = fields
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if self.include_source:
            entry["source"] = f"{record.pathname}:{record.lineno} {record.funcName}"
        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Coloured single-line output for a terminal."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"
    DIM = "\033[2m"

    def format(self, record: logging.LogRecord) -> str:
        connection_id, fields = _record_fields(record)
        color = self.LEVEL_COLORS.get(record.levelno, "")
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]

        parts = [f"{color}{clock} {record.levelname:<8}{self.RESET}"]
        if connection_id:
            parts.append(f"{self.DIM}{connection_id}{self.RESET}")
        parts.append(f"{record.name} | {record.getMessage()}")
        if fields:
            parts.append(" ".join(f"{key}={value!r}" for key, value in fields.items()))

        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class StructuredLogger(logging.Logger):
    """
    Logger whose log methods accept arbitrary keyword fields.

    Standard keywords (exc_info, stack_info, stacklevel, extra) keep their
    usual meaning; everything else becomes ``extra_data`` on the record.
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
        **fields: Any,
    ) -> None:
        extra = dict(extra) if extra else {}
        extra["extra_data"] = fields or None
        # One more frame to skip: this override sits between the caller and logging
        super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=extra,
            stack_info=stack_info,
            stacklevel=stacklevel + 1,
        )


logging.setLoggerClass(StructuredLogger)


def setup_logging(config: Settings | None = None) -> None:
    """
    Install the gateway's log handler on the root logger.

    Call once at startup. Safe to call again: the previous root handlers are
    replaced, not duplicated.
    """
    from shared.config.settings import settings as default_settings
    from shared.infrastructure.correlation import ConnectionIdFilter

    config = config or default_settings
    level = logging.DEBUG if config.debug else logging.INFO

    if config.environment == "production":
        formatter: logging.Formatter = StructuredFormatter(include_source=config.debug)
    else:
        formatter = DevelopmentFormatter()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(ConnectionIdFilter())
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str) -> StructuredLogger:
    """
    Get a structured logger.

    Usage:
        logger = get_logger(__name__)
        logger.warning("Send timed out", connection_id=handle.connection_id)
    """
    return logging.getLogger(name)  # type: ignore[return-value]


gateway_logger = get_logger("presence_gateway")
