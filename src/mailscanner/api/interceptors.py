"""Request/response interceptors for the API client.

Interceptors see every outbound request and every outcome. They may
modify the outgoing request and run side effects on failures, but they
never swallow or replace the error the caller receives.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import httpx

from mailscanner.storage.slots import UserStorage

logger = logging.getLogger(__name__)

UNAUTHORIZED_REDIRECT = "/?auth_error=unauthorized"

Navigator = Callable[[str], None]


def log_navigation(url: str) -> None:
    """Default navigator: record the redirect target in the log."""
    logger.info(f"Redirecting to {url}")


class Interceptor:
    """Base interceptor; every hook is a no-op."""

    def on_request(self, request: httpx.Request) -> None:
        """Inspect or modify an outgoing request."""

    def on_response(self, response: httpx.Response) -> None:
        """Inspect a successful response."""

    def on_error(self, error: Exception) -> None:
        """React to a failed dispatch. Must not raise."""


class AuthInterceptor(Interceptor):
    """Attach the stored auth token as a bearer credential."""

    def __init__(self, user_storage: UserStorage) -> None:
        self.user_storage = user_storage

    def on_request(self, request: httpx.Request) -> None:
        token = self.user_storage.get_auth_token()
        if token is not None:
            request.headers["Authorization"] = f"Bearer {token}"


class RecoveryInterceptor(Interceptor):
    """Classify failures and drive session teardown or storage cleanup.

    Failures are handled in priority order:
    1. HTTP 401: remove the auth token and navigate to the login entry point
    2. Storage capacity exceeded: run eviction so a later retry can succeed
    3. Anything else: log only
    """

    def __init__(self, user_storage: UserStorage, navigate: Navigator = log_navigation) -> None:
        self.user_storage = user_storage
        self.navigate = navigate

    def on_error(self, error: Exception) -> None:
        if is_unauthorized(error):
            self._end_session()
        elif self.user_storage.guard.is_capacity_exceeded(error):
            self._recover_quota()

        logger.error(f"API Error: {error!r}")

    def _end_session(self) -> None:
        logger.warning("Received 401 Unauthorized, clearing auth token")
        try:
            self.user_storage.remove_auth_token()
            self.navigate(UNAUTHORIZED_REDIRECT)
        except Exception as e:
            logger.exception(f"Session teardown failed: {e}")

    def _recover_quota(self) -> None:
        logger.warning("Storage quota error, attempting cleanup...")
        try:
            cleaned = self.user_storage.cleanup_storage()
        except Exception as e:
            logger.exception(f"Storage cleanup after quota error failed: {e}")
            return
        logger.warning(f"Quota recovery attempted (entries removed: {cleaned})")


def is_unauthorized(error: BaseException) -> bool:
    """Check whether an error is an HTTP 401 response."""
    return isinstance(error, httpx.HTTPStatusError) and error.response.status_code == 401
