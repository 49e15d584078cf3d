"""
Structured logging for chorus.

Every chorus module logs through a ``StructuredLogger`` that attaches keyword
fields to the record. The router scopes the event identity (``context``,
``user_id``) and the running ``command`` with ``LogContext``; formatters lift
those three keys into first-class record attributes and merge everything else
into the extra fields.

Usage:
    from chorus.logging_config import configure_logging, get_logger

    configure_logging(level="INFO", json_output=True)

    logger = get_logger(__name__)
    logger.info("Registered command", command="echo")

    with LogContext(context="group:100", user_id=42):
        logger.info("Dispatching message")
"""

import inspect
import json
import logging
import logging.handlers
import os
import sys
import threading
import time
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Dict, Optional

_log_context: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})

# Environment configuration
LOG_LEVEL = os.environ.get("CHORUS_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.environ.get("CHORUS_LOG_FORMAT", "text")  # "json" or "text"
LOG_FILE = os.environ.get("CHORUS_LOG_FILE", "")
LOG_MAX_BYTES = int(os.environ.get("CHORUS_LOG_MAX_BYTES", 10 * 1024 * 1024))
LOG_BACKUP_COUNT = int(os.environ.get("CHORUS_LOG_BACKUP_COUNT", 5))

# Dispatch keys promoted to record attributes
_PROMOTED_KEYS = ("context", "command", "user_id")


@dataclass
class LogRecord:
    """One dispatch log line: identity, command and free-form fields."""

    timestamp: str
    level: str
    logger: str
    message: str
    fields: Dict[str, Any] = field(default_factory=dict)
    context: Optional[str] = None
    command: Optional[str] = None
    user_id: Optional[int] = None
    exception: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "ts": self.timestamp,
            "level": self.level,
            "logger": self.logger,
            "msg": self.message,
        }
        for key in _PROMOTED_KEYS:
            value = getattr(self, key)
            if value is not None and value != "":
                result[key] = value
        result.update(self.fields)
        if self.exception:
            result["exception"] = self.exception
        return result

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    def to_text(self) -> str:
        tags = [self.level, self.logger, self.context, self.command]
        parts = [self.timestamp, *(f"[{tag}]" for tag in tags if tag), self.message]
        if self.fields:
            parts.append(" ".join(f"{k}={v}" for k, v in self.fields.items()))
        if self.exception:
            parts.append(f"\n{self.exception.get('traceback', '')}")
        return " ".join(parts)


def _build_record(record: logging.LogRecord, timestamp: str, logger_name: str) -> LogRecord:
    scoped = _log_context.get()
    fields = dict(getattr(record, "structured_fields", {}))
    promoted = {}
    for key in _PROMOTED_KEYS:
        # Explicit fields on the call win over the surrounding LogContext
        if key in fields:
            promoted[key] = fields.pop(key)
        else:
            promoted[key] = scoped.get(key)
    for key, value in scoped.items():
        if key not in _PROMOTED_KEYS:
            fields.setdefault(key, value)
    return LogRecord(
        timestamp=timestamp,
        level=record.levelname,
        logger=logger_name,
        message=record.getMessage(),
        fields=fields,
        **promoted,
    )


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_record = _build_record(
            record,
            datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            record.name,
        )
        if record.exc_info:
            exc_type, exc_value = record.exc_info[0], record.exc_info[1]
            log_record.exception = {
                "type": exc_type.__name__ if exc_type else "Unknown",
                "message": str(exc_value) if exc_value else "",
                "traceback": self.formatException(record.exc_info),
            }
        return log_record.to_json()


class TextFormatter(logging.Formatter):
    """Readable single-line format with the short logger name."""

    def format(self, record: logging.LogRecord) -> str:
        log_record = _build_record(
            record,
            datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            record.name.rsplit(".", 1)[-1],
        )
        if record.exc_info:
            log_record.exception = {"traceback": self.formatException(record.exc_info)}
        return log_record.to_text()


class StructuredLogger:
    """Thin wrapper over a stdlib logger that carries keyword fields on each record."""

    def __init__(self, name: str):
        self._logger = logging.getLogger(name)
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def _log(self, level: int, message: str, exc_info: bool = False, **fields: Any) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(level, message, exc_info=exc_info, extra={"structured_fields": fields})

    def debug(self, message: str, **fields: Any) -> None:
        self._log(logging.DEBUG, message, **fields)

    def info(self, message: str, **fields: Any) -> None:
        self._log(logging.INFO, message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._log(logging.WARNING, message, **fields)

    def error(self, message: str, exc_info: bool = False, **fields: Any) -> None:
        self._log(logging.ERROR, message, exc_info=exc_info, **fields)

    def exception(self, message: str, **fields: Any) -> None:
        """Log at ERROR with the active exception attached."""
        self._log(logging.ERROR, message, exc_info=True, **fields)


class LogContext:
    """
    Scope log fields to a block.

    Nested contexts merge over the outer ones. The fields live in a
    ``ContextVar``, so concurrent dispatches each keep their own.
    """

    def __init__(self, **fields: Any):
        self._fields = fields
        self._token: Optional[Token[Dict[str, Any]]] = None

    def __enter__(self) -> "LogContext":
        self._token = _log_context.set({**_log_context.get(), **self._fields})
        return self

    def __exit__(self, *args) -> None:
        if self._token is not None:
            _log_context.reset(self._token)


def get_context() -> Dict[str, Any]:
    return _log_context.get()


def clear_context() -> None:
    _log_context.set({})


_loggers: Dict[str, StructuredLogger] = {}
_loggers_lock = threading.Lock()


def get_logger(name: str) -> StructuredLogger:
    """Return the cached ``StructuredLogger`` for ``name``."""
    with _loggers_lock:
        if name not in _loggers:
            _loggers[name] = StructuredLogger(name)
        return _loggers[name]


def configure_logging(
    level: str | None = None,
    json_output: bool | None = None,
    log_file: str | None = None,
    propagate: bool = True,
) -> None:
    """
    Install chorus formatters on the root logger.

    Unset arguments fall back to ``CHORUS_LOG_LEVEL``, ``CHORUS_LOG_FORMAT`` and
    ``CHORUS_LOG_FILE``. A log file rotates at ``CHORUS_LOG_MAX_BYTES``.
    """
    log_level = getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO)
    use_json = json_output if json_output is not None else LOG_FORMAT == "json"
    file_path = log_file or LOG_FILE
    formatter = JSONFormatter() if use_json else TextFormatter()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if file_path:
        handlers.append(
            logging.handlers.RotatingFileHandler(
                file_path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT
            )
        )

    root = logging.getLogger()
    root.setLevel(log_level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(log_level)
        root.addHandler(handler)

    chorus_logger = logging.getLogger("chorus")
    chorus_logger.setLevel(log_level)
    chorus_logger.propagate = propagate


def log_function(level: str = "DEBUG"):
    """
    Log completion and duration of a sync or async function.

    Failures are logged at ERROR with traceback and re-raised.
    """
    log_level = getattr(logging, level.upper(), logging.DEBUG)

    def decorator(func: Callable) -> Callable:
        logger = get_logger(func.__module__)

        def report(start: float, error: Optional[Exception] = None) -> None:
            duration_ms = (time.monotonic() - start) * 1000
            if error is None:
                logger._log(
                    log_level,
                    f"Function completed: {func.__name__}",
                    function=func.__name__,
                    duration_ms=duration_ms,
                )
            else:
                logger.error(
                    f"Function failed: {func.__name__}",
                    exc_info=True,
                    function=func.__name__,
                    duration_ms=duration_ms,
                    error=str(error),
                )

        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                start = time.monotonic()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    report(start, e)
                    raise
                report(start)
                return result

            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs):
            start = time.monotonic()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                report(start, e)
                raise
            report(start)
            return result

        return wrapper

    return decorator
