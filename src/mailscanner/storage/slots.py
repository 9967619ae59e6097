"""Typed accessors for the named session slots.

The session is implicit: a stored auth token means the user is
authenticated. The token is kept as a raw string; email and name are JSON
encoded.

State machine:
    ANONYMOUS -> AUTHENTICATED  on a successful save_auth_token()
    AUTHENTICATED -> ANONYMOUS  on remove_auth_token() or a 401 response
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from mailscanner.storage.errors import StorageValidationError
from mailscanner.storage.guard import (
    AUTH_TOKEN_KEY,
    USER_EMAIL_KEY,
    USER_NAME_KEY,
    StorageGuard,
)

if TYPE_CHECKING:
    from mailscanner.config import Settings

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Implicit session state derived from the token slot."""

    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"


@dataclass
class UserInfo:
    """Stored user identity."""

    email: Any = None
    name: Any = None


class UserStorage:
    """Named slots (auth token, user email, user name) on top of a StorageGuard."""

    def __init__(self, guard: StorageGuard) -> None:
        self.guard = guard

    # Auth token

    def get_auth_token(self) -> str | None:
        return self.guard.read(AUTH_TOKEN_KEY)

    def save_auth_token(self, token: str) -> None:
        self.guard.write(AUTH_TOKEN_KEY, token)

    def remove_auth_token(self) -> None:
        self.guard.remove(AUTH_TOKEN_KEY)

    @property
    def session_state(self) -> SessionState:
        if self.get_auth_token() is None:
            return SessionState.ANONYMOUS
        return SessionState.AUTHENTICATED

    @property
    def is_authenticated(self) -> bool:
        return self.session_state is SessionState.AUTHENTICATED

    # User info

    def get_user_info(self) -> UserInfo:
        """Return the stored email and name (None for absent slots)."""
        return UserInfo(
            email=self._read_structured(USER_EMAIL_KEY),
            name=self._read_structured(USER_NAME_KEY),
        )

    def save_user_info(self, email: Any, name: Any) -> None:
        """Save email and name as JSON.

        Raises:
            StorageValidationError: If a value is not JSON serializable (NaN and
                infinities included)
            StorageFull: If the store stays full after cleanup
            StorageError: If the write fails
        """
        self._write_structured(USER_EMAIL_KEY, email)
        self._write_structured(USER_NAME_KEY, name)

    def remove_user_info(self) -> None:
        self.guard.remove(USER_EMAIL_KEY)
        self.guard.remove(USER_NAME_KEY)

    def cleanup_storage(self) -> bool:
        """Run eviction; returns True if anything was removed."""
        return self.guard.cleanup()

    def _write_structured(self, key: str, value: Any) -> None:
        try:
            encoded = json.dumps(value, ensure_ascii=False, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise StorageValidationError(f"Cannot serialize '{key}' to JSON: {e}") from e
        self.guard.write(key, encoded)

    def _read_structured(self, key: str) -> Any:
        raw = self.guard.read(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (ValueError, RecursionError):
            # Legacy or corrupt value: hand back the raw string
            logger.debug(f"Value of '{key}' is not valid JSON, returning raw string")
            return raw


# Global instance (singleton pattern)
_user_storage: UserStorage | None = None


def build_user_storage(settings: Settings) -> UserStorage:
    """Create UserStorage over the file-backed store described by settings."""
    from mailscanner.storage.file import FileStore

    store = FileStore(settings.storage_file, capacity=settings.storage_capacity)
    guard = StorageGuard(
        store,
        max_size=settings.storage_max_size,
        write_warning_ratio=settings.storage_write_warning_ratio,
        cleanup_ratio=settings.storage_cleanup_ratio,
    )
    return UserStorage(guard)


def get_user_storage(settings: Settings | None = None) -> UserStorage:
    """Get or create the process-wide UserStorage.

    Args:
        settings: Settings used on first creation (default: get_settings())
    """
    global _user_storage
    if _user_storage is None:
        from mailscanner.config import get_settings

        _user_storage = build_user_storage(settings or get_settings())
    return _user_storage


def reset_user_storage() -> None:
    """Drop the process-wide instance so the next call rebuilds it."""
    global _user_storage
    _user_storage = None
