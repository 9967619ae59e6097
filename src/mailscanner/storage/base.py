"""Base interface for bounded key-value stores."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator

from mailscanner.storage.errors import CapacityExceededError


class BoundedStore(ABC):
    """Abstract string-to-string store with a platform-enforced capacity.

    The real capacity is not assumed to be known by callers. A write that
    would exceed it raises CapacityExceededError; every other failure is
    raised as a StorageError subclass.

    Example:
        ```python
        store = MemoryStore(capacity=5 * 1024 * 1024)
        store.set("auth_token", "eyJhbGciOi...")
        token = store.get("auth_token")
        ```
    """

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the value stored under key.

        Args:
            key: Key to read

        Returns:
            Stored value, or None if the key is absent

        Raises:
            StorageError: If the read fails
        """

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value.

        Args:
            key: Key to write
            value: String value

        Raises:
            CapacityExceededError: If the write would exceed capacity
            StorageError: If the write fails for another reason
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key. Removing an absent key is not an error.

        Args:
            key: Key to remove

        Raises:
            StorageError: If the delete fails
        """

    @abstractmethod
    def clear(self) -> None:
        """Remove every entry.

        Raises:
            StorageError: If the clear fails
        """

    @abstractmethod
    def keys(self) -> list[str]:
        """Return a snapshot of all present keys."""

    def items(self) -> Iterator[tuple[str, str]]:
        """Iterate over (key, value) pairs present at call time."""
        for key in self.keys():
            value = self.get(key)
            if value is not None:
                yield key, value

    def is_capacity_exceeded(self, error: BaseException) -> bool:
        """Check whether an error is this store's capacity signal.

        Follows the ``__cause__``/``__context__`` chain so that wrapped
        capacity errors are recognised as well.

        Args:
            error: Exception to classify

        Returns:
            True if the error (or one it was raised from) is a capacity error
        """
        seen: set[int] = set()
        current: BaseException | None = error
        while current is not None and id(current) not in seen:
            if isinstance(current, CapacityExceededError):
                return True
            seen.add(id(current))
            current = current.__cause__ or current.__context__
        return False
