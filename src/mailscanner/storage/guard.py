"""Storage guard: size accounting, safe writes and eviction for a bounded store.

The guard owns every read, write and delete against the bounded store and
keeps the store below its real (unknown) limit by planning against a soft
budget:

- writes whose projected size exceeds ``write_warning_ratio`` of the budget
  trigger eviction before the write is attempted
- a write rejected by the store triggers eviction and exactly one retry
- eviction first drops known transient keys, then, if usage is still above
  ``cleanup_ratio``, everything outside the essential key set

Eviction only deletes, so it never re-enters the write path.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from fnmatch import fnmatchcase

from mailscanner.storage.base import BoundedStore
from mailscanner.storage.errors import StorageError, StorageFull

logger = logging.getLogger(__name__)

# Soft budget used for planning; not the store's real limit
MAX_STORAGE_SIZE = 1024 * 1024

WRITE_WARNING_RATIO = 0.9
CLEANUP_RATIO = 0.8
MONITOR_WARNING_RATIO = 0.5

AUTH_TOKEN_KEY = "auth_token"
USER_EMAIL_KEY = "user_email"
USER_NAME_KEY = "user_name"

ESSENTIAL_KEYS: frozenset[str] = frozenset({AUTH_TOKEN_KEY, USER_EMAIL_KEY, USER_NAME_KEY})

# Build and dev-tooling caches that are always safe to drop
TRANSIENT_KEYS: tuple[str, ...] = (
    "vite:moduleResolutionCache",
    "viteDeps",
    "__REDUX_DEVTOOLS_EXTENSION_COMPOSE__",
)


class StorageGuard:
    """Quota-aware access to a bounded store.

    Example:
        ```python
        guard = StorageGuard(MemoryStore(capacity=5 * 1024 * 1024))
        guard.write("user_email", '"me@example.com"')
        print(f"{guard.usage_percent():.1f}% used")
        ```
    """

    def __init__(
        self,
        store: BoundedStore,
        *,
        max_size: int = MAX_STORAGE_SIZE,
        write_warning_ratio: float = WRITE_WARNING_RATIO,
        cleanup_ratio: float = CLEANUP_RATIO,
        essential_keys: Iterable[str] = ESSENTIAL_KEYS,
        transient_keys: Iterable[str] = TRANSIENT_KEYS,
    ) -> None:
        """Initialize guard.

        Args:
            store: Bounded store to guard
            max_size: Soft budget in characters
            write_warning_ratio: Share of budget above which writes evict first
            cleanup_ratio: Share of budget above which non-essential keys are evicted
            essential_keys: Keys that eviction never removes
            transient_keys: Key patterns (fnmatch) that eviction always removes
        """
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self.store = store
        self.max_size = max_size
        self.write_warning_ratio = write_warning_ratio
        self.cleanup_ratio = cleanup_ratio
        self.essential_keys = frozenset(essential_keys)
        self.transient_keys = tuple(transient_keys)

    # Size accounting

    def occupied_size(self) -> int:
        """Sum of key and value lengths over all entries, recomputed on every call."""
        return sum(len(key) + len(value) for key, value in self.store.items())

    def usage_ratio(self) -> float:
        """Occupied size as a fraction of the budget (may exceed 1.0)."""
        return self.occupied_size() / self.max_size

    def usage_percent(self) -> float:
        """Occupied size as a percentage of the budget."""
        return self.usage_ratio() * 100

    def is_capacity_exceeded(self, error: BaseException) -> bool:
        """Check whether an error is the store's capacity signal."""
        return self.store.is_capacity_exceeded(error)

    # Reads and writes

    def read(self, key: str) -> str | None:
        """Return the raw value stored under key, or None if absent.

        Raises:
            StorageError: If the store read fails
        """
        try:
            return self.store.get(key)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read '{key}': {e}") from e

    def write(self, key: str, value: str) -> None:
        """Write value under key, evicting as needed.

        At most two physical writes and two evictions happen per call.

        Args:
            key: Key to write
            value: Raw or already-encoded string value

        Raises:
            StorageFull: If the store still rejects the write after eviction and a retry
            StorageError: If the store fails for any other reason
        """
        projected = self.occupied_size() + len(key) + len(value)
        if projected > self.max_size * self.write_warning_ratio:
            logger.warning(f"Storage quota approaching. Projected size: {projected} bytes")
            self.cleanup()

        try:
            self._set(key, value)
            return
        except StorageError as e:
            if not self.store.is_capacity_exceeded(e):
                raise

        logger.error(f"Storage quota exceeded writing '{key}'. Cleaning up old data...")
        self.cleanup()

        try:
            self._set(key, value)
        except StorageError as e:
            if self.store.is_capacity_exceeded(e):
                logger.error(f"Failed to save '{key}' to storage after cleanup: {e}")
                raise StorageFull(
                    f"Storage full: could not save '{key}' after cleanup", key=key
                ) from e
            raise

    def _set(self, key: str, value: str) -> None:
        try:
            self.store.set(key, value)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to write '{key}': {e}") from e

    def remove(self, key: str) -> bool:
        """Delete key, logging and swallowing failures.

        Returns:
            True if the delete call succeeded
        """
        try:
            self.store.delete(key)
            return True
        except Exception as e:
            logger.error(f"Failed to remove {key} from storage: {e}")
            return False

    def clear(self) -> bool:
        """Remove every entry, logging and swallowing failures.

        Returns:
            True if the store was cleared
        """
        try:
            self.store.clear()
        except Exception as e:
            logger.error(f"Failed to clear storage: {e}")
            return False
        logger.info("Storage cleared successfully")
        return True

    # Eviction

    def is_transient(self, key: str) -> bool:
        """Check whether key matches the transient key list."""
        return any(fnmatchcase(key, pattern) for pattern in self.transient_keys)

    def cleanup(self) -> bool:
        """Run the two-tier eviction policy.

        Tier 1 removes every transient key. Tier 2 re-measures usage and, if
        it is still above the cleanup ratio, removes every key outside the
        essential set. Deletion failures are logged and skipped.

        Returns:
            True if any entry was removed
        """
        cleaned = False

        try:
            keys = self.store.keys()
        except Exception as e:
            logger.error(f"Failed to enumerate storage keys: {e}")
            return False

        for key in keys:
            if key not in self.essential_keys and self.is_transient(key):
                cleaned = self.remove(key) or cleaned

        try:
            size = self.occupied_size()
            if size > self.max_size * self.cleanup_ratio:
                logger.warning(
                    f"Storage still at {size} bytes after removing caches, "
                    "keeping only essential keys"
                )
                for key in self.store.keys():
                    if key not in self.essential_keys:
                        cleaned = self.remove(key) or cleaned
        except Exception as e:
            logger.error(f"Storage cleanup failed: {e}")

        if cleaned:
            try:
                logger.info(f"Cleaned storage. New size: {self.occupied_size()} bytes")
            except Exception as e:
                logger.debug(f"Could not measure storage after cleanup: {e}")

        return cleaned
