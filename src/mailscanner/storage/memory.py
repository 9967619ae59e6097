"""In-memory bounded store."""

from __future__ import annotations

from mailscanner.storage.base import BoundedStore
from mailscanner.storage.errors import CapacityExceededError


class MemoryStore(BoundedStore):
    """Process-local bounded store backed by a dict.

    Capacity is measured the same way the guard measures usage: the sum of
    key and value lengths. ``capacity=None`` means unbounded.
    """

    def __init__(self, capacity: int | None = None, initial: dict[str, str] | None = None) -> None:
        """Initialize store.

        Args:
            capacity: Hard capacity in characters (None for unbounded)
            initial: Optional entries to pre-populate, not checked against capacity
        """
        self.capacity = capacity
        self._data: dict[str, str] = dict(initial or {})

    def _size_with(self, key: str, value: str) -> int:
        total = sum(len(k) + len(v) for k, v in self._data.items() if k != key)
        return total + len(key) + len(value)

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.capacity is not None:
            new_size = self._size_with(key, value)
            if new_size > self.capacity:
                raise CapacityExceededError(
                    f"Writing '{key}' would use {new_size} of {self.capacity} characters",
                    key=key,
                )
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def keys(self) -> list[str]:
        return list(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data
