"""Utility functions and helpers."""

from __future__ import annotations

from mailscanner.utils.logging import (
    CorrelationIDFilter,
    JSONFormatter,
    LogSanitizer,
    SanitizingFormatter,
    correlation_scope,
    generate_correlation_id,
    get_correlation_id,
    sanitize_text,
)

__all__ = [
    "sanitize_text",
    "LogSanitizer",
    "SanitizingFormatter",
    "JSONFormatter",
    "CorrelationIDFilter",
    "correlation_scope",
    "generate_correlation_id",
    "get_correlation_id",
]
