"""Client for the mail-indexing API."""

from __future__ import annotations

from mailscanner.api.client import ApiClient
from mailscanner.api.interceptors import (
    UNAUTHORIZED_REDIRECT,
    AuthInterceptor,
    Interceptor,
    RecoveryInterceptor,
    is_unauthorized,
)
from mailscanner.api.service import ApiService

__all__ = [
    "ApiClient",
    "ApiService",
    "Interceptor",
    "AuthInterceptor",
    "RecoveryInterceptor",
    "UNAUTHORIZED_REDIRECT",
    "is_unauthorized",
]
