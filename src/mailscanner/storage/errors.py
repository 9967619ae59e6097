"""Storage layer exceptions."""

from __future__ import annotations


class StorageError(Exception):
    """Base exception for storage operations."""


class StoragePermissionError(StorageError):
    """Raised when operation fails due to insufficient permissions."""


class StorageValidationError(StorageError):
    """Raised when a value cannot be encoded for storage."""


class StorageCorruptedError(StorageError):
    """Raised when stored data is corrupted or invalid."""


class CapacityExceededError(StorageError):
    """Raised by a bounded store when a write would exceed its capacity."""

    def __init__(self, message: str, *, key: str | None = None) -> None:
        """Initialize capacity error.

        Args:
            message: Error description
            key: Key whose write was rejected, if known
        """
        super().__init__(message)
        self.key = key


class StorageFull(CapacityExceededError):
    """Raised when a write still exceeds capacity after cleanup and one retry."""
