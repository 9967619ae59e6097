"""Bounded client-side storage.

Provides:
- BoundedStore interface with in-memory and JSON-file implementations
- StorageGuard for size accounting, safe writes and eviction
- UserStorage for the typed session slots

Example:
    ```python
    from mailscanner.storage import MemoryStore, StorageGuard, UserStorage

    slots = UserStorage(StorageGuard(MemoryStore()))
    slots.save_auth_token(token)
    slots.save_user_info("me@example.com", "Me")
    ```
"""

from __future__ import annotations

from mailscanner.storage.base import BoundedStore
from mailscanner.storage.errors import (
    CapacityExceededError,
    StorageCorruptedError,
    StorageError,
    StorageFull,
    StoragePermissionError,
    StorageValidationError,
)
from mailscanner.storage.file import FileStore
from mailscanner.storage.guard import (
    ESSENTIAL_KEYS,
    MAX_STORAGE_SIZE,
    TRANSIENT_KEYS,
    StorageGuard,
)
from mailscanner.storage.memory import MemoryStore
from mailscanner.storage.slots import (
    SessionState,
    UserInfo,
    UserStorage,
    build_user_storage,
    get_user_storage,
    reset_user_storage,
)

__all__ = [
    # Stores
    "BoundedStore",
    "MemoryStore",
    "FileStore",
    # Guard and slots
    "StorageGuard",
    "UserStorage",
    "UserInfo",
    "SessionState",
    "build_user_storage",
    "get_user_storage",
    "reset_user_storage",
    "MAX_STORAGE_SIZE",
    "ESSENTIAL_KEYS",
    "TRANSIENT_KEYS",
    # Exceptions
    "StorageError",
    "StoragePermissionError",
    "StorageValidationError",
    "StorageCorruptedError",
    "CapacityExceededError",
    "StorageFull",
]
