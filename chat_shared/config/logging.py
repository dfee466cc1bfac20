"""
Structured logging shared by the gateway and the console client.

Log calls take structured fields as keyword arguments:

    logger.info("Session registered", identity="alice")

In production records are written as one JSON object per line; elsewhere a
compact coloured line is used. Records emitted while a gateway connection
is being served carry its ``connection_id`` automatically (see
``bind_connection``).
"""

import json
import logging
import sys
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, TextIO

from chat_shared.config.settings import settings

# Set by the endpoint task for the lifetime of one connection
_connection_id: ContextVar[int | None] = ContextVar("connection_id", default=None)

_QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "uvicorn.error": logging.INFO,
    "websockets": logging.WARNING,
}


def bind_connection(connection_id: int) -> Token:
    """Tag every record logged from the current task with ``connection_id``."""
    return _connection_id.set(connection_id)


def unbind_connection(token: Token) -> None:
    _connection_id.reset(token)


class ConnectionContextFilter(logging.Filter):
    """Copies the bound connection id onto each record passing the handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.connection_id = _connection_id.get()
        return True


def _record_fields(record: logging.LogRecord) -> dict[str, Any]:
    fields = dict(getattr(record, "extra_data", None) or {})
    bound = getattr(record, "connection_id", None)
    if bound is not None:
        fields.setdefault("connection_id", bound)
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        fields = _record_fields(record)
        if fields:
            entry["data"] = fields
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if settings.debug:
            entry["source"] = f"{record.pathname}:{record.lineno} in {record.funcName}"
        return json.dumps(entry, default=str, ensure_ascii=False)


class DevelopmentFormatter(logging.Formatter):
    """Single coloured line per record."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    DIM = "\033[2m"
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, self.RESET)
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        fields = _record_fields(record)
        conn = fields.pop("connection_id", None)

        parts = [f"{color}{clock} {record.levelname[0]}{self.RESET}"]
        if conn is not None:
            parts.append(f"{self.DIM}#{conn}{self.RESET}")
        parts.append(f"{record.name}: {record.getMessage()}")
        if fields:
            parts.append(self.DIM + " ".join(f"{k}={v!r}" for k, v in fields.items()) + self.RESET)

        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class StructuredLogger(logging.Logger):
    """
    Logger accepting arbitrary keyword fields on every level method.

    Unknown keyword arguments end up on the record as ``extra_data``; the
    standard ``exc_info``, ``stack_info``, ``stacklevel`` and ``extra``
    arguments keep their usual meaning.
    """

    def _log(  # type: ignore[override]
        self,
        level: int,
        msg: object,
        args: Any,
        exc_info: Any = None,
        extra: dict | None = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        **fields: Any,
    ) -> None:
        extra = dict(extra or {})
        extra["extra_data"] = fields or None
        super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=extra,
            stack_info=stack_info,
            # skip this frame when locating the caller
            stacklevel=stacklevel + 1,
        )


logging.setLoggerClass(StructuredLogger)


def setup_logging(stream: TextIO | None = None, level: str | None = None) -> None:
    """
    Install the process-wide handler. Safe to call more than once; the
    previous root handlers are replaced.

    Args:
        stream: Where records go. Defaults to stdout; the console client
            passes stderr so logs stay out of the chat transcript.
        level: Level name overriding ``LOG_LEVEL`` and the debug default.
    """
    level_name = (level or settings.log_level or ("DEBUG" if settings.debug else "INFO")).upper()
    log_level = logging.getLevelName(level_name)
    if not isinstance(log_level, int):
        raise ValueError(f"Unknown log level: {level_name}")

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.addFilter(ConnectionContextFilter())
    handler.setFormatter(
        StructuredFormatter() if settings.environment == "production" else DevelopmentFormatter()
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(log_level)

    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str) -> StructuredLogger:
    """
    Usage:
        logger = get_logger(__name__)
        logger.warning("Send failed", error=str(e), exc_info=True)
    """
    return logging.getLogger(name)  # type: ignore[return-value]


gateway_logger = get_logger("chat_gateway")
