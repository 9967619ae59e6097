"""Logging utilities with sanitization and correlation ID support.

This module provides:
- Log sanitization to mask credentials (bearer tokens, JWTs, passwords, emails)
- Correlation IDs for tracking one API dispatch across log entries
- SanitizingFormatter for complete output sanitization including exceptions
- JSONFormatter for structured JSON logging
"""

from __future__ import annotations

import contextvars
import json
import logging
import re
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any, ClassVar

correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)

# Shared by LogSanitizer, SanitizingFormatter and JSONFormatter
SENSITIVE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    # Authorization headers and bearer credentials
    (
        re.compile(r"(Authorization)(['\"]?\s*[:=]\s*['\"]?)(Bearer\s+)?[A-Za-z0-9_\-\.=+/]+"),
        r"\1\2***AUTH***",
    ),
    (re.compile(r"(Bearer)\s+[A-Za-z0-9_\-\.=+/]+"), r"\1 ***AUTH***"),
    # JWTs (header.payload.signature)
    (re.compile(r"eyJ[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]*"), "***JWT***"),
    # Tokens in key=value or JSON form
    (
        re.compile(r"((?:auth_)?token|api[_-]?key)(['\"]?\s*[:=]\s*['\"]?)([A-Za-z0-9_\-\.]{8,})"),
        r"\1\2***TOKEN***",
    ),
    # Passwords in various contexts
    (
        re.compile(r"(password|passwd|pwd)(['\"]?\s*[:=]\s*['\"]?)([^\s'\",}]{3,})"),
        r"\1\2***PASSWORD***",
    ),
    # Email addresses (partial masking)
    (re.compile(r"([a-zA-Z0-9._%+-]+)@([a-zA-Z0-9.-]+\.[a-zA-Z]{2,})"), r"***@\2"),
]


def sanitize_text(text: str) -> str:
    """Apply all sanitization patterns to text.

    Args:
        text: The text to sanitize

    Returns:
        Sanitized text with sensitive data masked
    """
    for pattern, replacement in SENSITIVE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class LogSanitizer(logging.Filter):
    """Filter that sanitizes sensitive data from log records.

    Note: This filter sanitizes msg and args; exception tracebacks
    are sanitized by SanitizingFormatter at format time.
    """

    PATTERNS: ClassVar[list[tuple[re.Pattern[str], str]]] = SENSITIVE_PATTERNS

    def filter(self, record: logging.LogRecord) -> bool:
        if record.msg:
            record.msg = sanitize_text(str(record.msg))

        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._sanitize_value(v) for k, v in record.args.items()}
            elif isinstance(record.args, tuple):
                record.args = tuple(self._sanitize_value(arg) for arg in record.args)

        return True

    def _sanitize_value(self, value: Any) -> Any:
        if isinstance(value, str):
            return sanitize_text(value)
        elif isinstance(value, dict):
            return {k: self._sanitize_value(v) for k, v in value.items()}
        elif isinstance(value, list | tuple):
            sanitized = [self._sanitize_value(item) for item in value]
            return type(value)(sanitized)
        return value


class SanitizingFormatter(logging.Formatter):
    """Formatter that sanitizes the final formatted output.

    Catches sensitive data that only appears after formatting, such as
    exception messages and stack traces.
    """

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)
        return sanitize_text(formatted)


class CorrelationIDFilter(logging.Filter):
    """Filter that adds the current correlation ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        cid = correlation_id.get()
        record.correlation_id = cid if cid else "-"
        return True


def get_correlation_id() -> str | None:
    """Get the current correlation ID from context."""
    return correlation_id.get()


def generate_correlation_id() -> str:
    """Generate a new correlation ID.

    Returns:
        A unique correlation ID string
    """
    return uuid.uuid4().hex[:16]


@contextmanager
def correlation_scope(cid: str | None = None) -> Iterator[str]:
    """Run a block under a correlation ID, restoring the previous one afterwards.

    Args:
        cid: Correlation ID to use (generated if None)

    Yields:
        The active correlation ID
    """
    cid = cid or generate_correlation_id()
    token = correlation_id.set(cid)
    try:
        yield cid
    finally:
        correlation_id.reset(token)


class JSONFormatter(logging.Formatter):
    """Formatter that outputs logs as JSON for log aggregators.

    Each log entry includes timestamp (ISO 8601), level, logger, the
    sanitized message, the correlation ID and any extra record fields.
    """

    _STANDARD_ATTRS: ClassVar[frozenset[str]] = frozenset(
        {
            "name",
            "msg",
            "args",
            "created",
            "filename",
            "funcName",
            "levelname",
            "levelno",
            "lineno",
            "module",
            "msecs",
            "pathname",
            "process",
            "processName",
            "relativeCreated",
            "stack_info",
            "exc_info",
            "exc_text",
            "thread",
            "threadName",
            "taskName",
            "correlation_id",
            "message",
        }
    )

    def __init__(self, sanitize: bool = True) -> None:
        """Initialize JSON formatter.

        Args:
            sanitize: If True, sanitize sensitive data in output
        """
        super().__init__()
        self.sanitize = sanitize

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "correlation_id"):
            log_entry["correlation_id"] = record.correlation_id

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in self._STANDARD_ATTRS and not key.startswith("_"):
                try:
                    json.dumps(value)
                    log_entry[key] = value
                except (TypeError, ValueError):
                    log_entry[key] = str(value)

        if self.sanitize:
            log_entry = self._sanitize(log_entry)

        return json.dumps(log_entry, ensure_ascii=False, default=str)

    def _sanitize(self, data: Any) -> Any:
        if isinstance(data, str):
            return sanitize_text(data)
        if isinstance(data, dict):
            return {key: self._sanitize(value) for key, value in data.items()}
        if isinstance(data, list):
            return [self._sanitize(item) for item in data]
        return data
