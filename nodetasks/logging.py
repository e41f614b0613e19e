"""
NodeTasks Structured Logging

Structured logging with context propagation, JSON formatting,
and sensitive data redaction. Log output goes to stderr so that the
forwarded output of build actions stays untouched on stdout.
"""

import json
import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Generator, Optional


STANDARD_FIELDS = ("run_id", "task")

_RESERVED_LOG_RECORD_ATTRS = set(
    logging.LogRecord(
        name="",
        level=logging.INFO,
        pathname="",
        lineno=0,
        msg="",
        args=(),
        exc_info=None,
    ).__dict__.keys()
)
_RESERVED_LOG_RECORD_ATTRS.update({"asctime", "message"})


def _json_fallback(value: Any) -> str:  # pragma: no cover - formatting
    try:
        return str(value)
    except Exception:
        return repr(value)


_REDACTED = "[REDACTED]"
_SECRET_KEY_MARKERS = (
    "token", "secret", "password", "passwd", "api_key", "apikey",
    "access_key", "private_key", "bearer", "credential"
)


def _looks_sensitive_key(key: str) -> bool:
    """Check if a key name suggests sensitive data."""
    lower = (key or "").lower()
    return any(marker in lower for marker in _SECRET_KEY_MARKERS)


def _sanitize_for_logging(key: str, value: Any) -> Any:
    """Redact values whose key looks sensitive, recursing into containers."""
    if _looks_sensitive_key(key):
        return _REDACTED
    if isinstance(value, dict):
        return {k: _sanitize_for_logging(str(k), v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize_for_logging(key, v) for v in value]
    return value


_LOG_CONTEXT: ContextVar[Dict[str, Any]] = ContextVar("NODETASKS_LOG_CONTEXT", default={})


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the current log context to avoid accidental mutation."""
    return dict(_LOG_CONTEXT.get() or {})


@contextmanager
def log_context(**fields: Any) -> Generator[None, None, None]:
    """Context manager for temporarily adding fields to the log context."""
    token = _LOG_CONTEXT.set({**get_log_context(), **{k: v for k, v in fields.items() if v is not None}})
    try:
        yield
    finally:
        _LOG_CONTEXT.reset(token)


class ContextFilter(logging.Filter):
    """
    Logging filter that ensures the standard context fields exist on every record.

    Copies contextvars-based fields onto log records and fills defaults
    for missing fields so formatters can rely on them.
    """

    def __init__(self, defaults: Optional[Dict[str, Any]] = None) -> None:
        super().__init__()
        self.defaults = {field: "-" for field in STANDARD_FIELDS}
        if defaults:
            self.defaults.update({k: v for k, v in defaults.items() if v is not None})

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = get_log_context()
        for key, value in ctx.items():
            if value is None or key in _RESERVED_LOG_RECORD_ATTRS:
                continue
            if not hasattr(record, key):
                setattr(record, key, value)

        for key, default in self.defaults.items():
            if not hasattr(record, key):
                setattr(record, key, default)
        return True


class JsonFormatter(logging.Formatter):
    """JSON log formatter that includes all context fields and sanitizes sensitive data."""

    def format(self, record: logging.LogRecord) -> str:  # pragma: no cover - formatting
        data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in STANDARD_FIELDS:
            data[field] = getattr(record, field, "-")

        # Everything passed via `extra=`
        for key, value in record.__dict__.items():
            if key in _RESERVED_LOG_RECORD_ATTRS or key in data:
                continue
            data[key] = value

        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)

        sanitized = {k: _sanitize_for_logging(k, v) for k, v in data.items()}
        return json.dumps(sanitized, default=_json_fallback)


def setup_logging(level: Optional[str] = None, json_output: bool = False) -> logging.Logger:
    """
    Configure the root logger with structured logging support.

    Args:
        level: Log level (default: from NODETASKS_LOG_LEVEL or INFO)
        json_output: If True, use JSON formatting; otherwise use text format

    Returns:
        The nodetasks logger instance
    """
    resolved_level = level or os.environ.get("NODETASKS_LOG_LEVEL") or "INFO"

    handler = logging.StreamHandler(sys.stderr)
    handler.addFilter(ContextFilter())

    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s run=%(run_id)s task=%(task)s")
        )

    root = logging.getLogger()
    root.handlers = []
    root.setLevel(getattr(logging, str(resolved_level).upper(), logging.INFO))
    root.addHandler(handler)

    return logging.getLogger("nodetasks")


def get_logger(name: str = "nodetasks") -> logging.Logger:
    """Get a logger instance with the specified name."""
    return logging.getLogger(name)


def init_cli_logging(level: Optional[str] = None, json_output: bool = False) -> logging.Logger:
    """Initialize logging for the CLI using the configured log level."""
    return setup_logging(
        level or os.environ.get("NODETASKS_LOG_LEVEL") or "INFO",
        json_output=json_output,
    )


def log_extra(
    *,
    run_id: Optional[str] = None,
    task: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """
    Build a consistent extra dict for structured logging.

    Only non-None values are included so defaults from ContextFilter still apply.

    Example:
        logger.info("Dispatching", extra=log_extra(task="build", argv=["cargo", "build"]))
    """
    payload: Dict[str, Any] = {}
    if run_id is not None:
        payload["run_id"] = run_id
    if task is not None:
        payload["task"] = task
    payload.update({k: v for k, v in extra.items() if v is not None})
    return payload


# Standard exit codes for the CLI
EXIT_OK = 0
EXIT_RUNTIME_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_UNKNOWN_COMMAND = 2
EXIT_DEP_MISSING = 3
