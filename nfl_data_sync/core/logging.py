"""
Structured logging with correlation IDs and sync feed context.

Two context variables travel with every log call made inside a request or a
sync run:
- the correlation ID (one per HTTP request, one per sync run)
- the feed context (feed, feed_key, season, week, team) of the feed being
  fetched, set with ``feed_context()`` around each unit of sync work

Both formatters render the feed context as first-class fields. Context passed
per call through ``extra={"week": 3}`` is merged in and wins over the
ambient context.
"""
import json
import logging
import re
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime
from typing import Any, Dict, Iterator, Optional

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")
feed_context_var: ContextVar[Dict[str, Any]] = ContextVar("feed_context", default={})

# Feed context fields, in rendering order
CONTEXT_FIELDS = ("feed", "feed_key", "season", "week", "team")

# Attributes every LogRecord carries; anything else arrived through ``extra``
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}

_API_KEY_PATTERN = re.compile(r"(key=)[^&\s]+", re.IGNORECASE)


def _record_context(record: logging.LogRecord) -> Dict[str, Any]:
    """Ambient feed context overlaid with the record's own context fields."""
    context = dict(feed_context_var.get())
    for name in CONTEXT_FIELDS:
        value = getattr(record, name, None)
        if value is not None:
            context[name] = value
    return {name: context[name] for name in CONTEXT_FIELDS if name in context}


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    Fields: timestamp, level, logger, message, correlation_id, then the feed
    context fields that are set, ``exception`` when one is attached and
    ``extra`` for any other caller-supplied attributes.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": correlation_id_var.get(),
        }
        entry.update(_record_context(record))

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra = {
            name: value
            for name, value in vars(record).items()
            if name not in _RECORD_ATTRS and name not in CONTEXT_FIELDS
        }
        if extra:
            entry["extra"] = extra

        return json.dumps(entry, default=str)


class ColoredFormatter(logging.Formatter):
    """Human-readable console output for development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        parts = [f"{color}[{record.levelname}]{self.RESET} {record.name}: {record.getMessage()}"]

        context = _record_context(record)
        if context:
            parts.append(" ".join(f"{name}={value}" for name, value in context.items()))
        correlation_id = correlation_id_var.get()
        if correlation_id:
            parts.append(f"correlation_id={correlation_id}")

        line = " | ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    handler: Optional[logging.Handler] = None,
) -> None:
    """
    Install one root handler with the JSON or the colored formatter.

    Args:
        level: Root log level name
        json_output: JSON lines when True, colored console output otherwise
        handler: Handler to install (stdout stream handler when omitted)
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level)

    handler = handler or logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_output else ColoredFormatter())
    root.addHandler(handler)

    for noisy in ("httpx", "httpcore", "apscheduler", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_correlation_id(correlation_id: str) -> Any:
    """Set the correlation ID; returns the token for ``clear_correlation_id``."""
    return correlation_id_var.set(correlation_id)


def get_correlation_id() -> str:
    return correlation_id_var.get()


def clear_correlation_id(token: Any) -> None:
    correlation_id_var.reset(token)


@contextmanager
def sync_run_context(prefix: str = "sync") -> Iterator[str]:
    """
    Give one sync run its own correlation ID for the duration of the block.

    Yields:
        The generated correlation ID, e.g. ``sync-3f2a9c1b7d4e``
    """
    correlation_id = f"{prefix}-{uuid.uuid4().hex[:12]}"
    token = set_correlation_id(correlation_id)
    try:
        yield correlation_id
    finally:
        clear_correlation_id(token)


@contextmanager
def feed_context(**fields: Any) -> Iterator[Dict[str, Any]]:
    """
    Attach feed context to every log line emitted inside the block.

    Nested blocks add to the outer context; fields passed as None are left
    out.

    Example:
        with feed_context(season="2023REG"):
            with feed_context(feed="ScoresFinal", week=3):
                logger.info("fetched")  # carries season, feed and week
    """
    unknown = set(fields) - set(CONTEXT_FIELDS)
    if unknown:
        raise ValueError(f"Unknown feed context fields: {', '.join(sorted(unknown))}")
    merged = {**feed_context_var.get(), **{k: v for k, v in fields.items() if v is not None}}
    token = feed_context_var.set(merged)
    try:
        yield merged
    finally:
        feed_context_var.reset(token)


def current_feed_context() -> Dict[str, Any]:
    return dict(feed_context_var.get())


def redact_api_key(url: str) -> str:
    """Mask the ``key`` query parameter of an upstream URL before logging it."""
    return _API_KEY_PATTERN.sub(r"\1***", url)
