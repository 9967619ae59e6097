"""File-backed bounded store with atomic writes."""

from __future__ import annotations

import atexit
import contextlib
import errno
import json
import logging
import os
import tempfile
from pathlib import Path

from mailscanner.storage.base import BoundedStore
from mailscanner.storage.errors import (
    CapacityExceededError,
    StorageCorruptedError,
    StorageError,
    StoragePermissionError,
)

logger = logging.getLogger(__name__)

# Browsers give localStorage roughly 5 MB per origin
DEFAULT_CAPACITY = 5 * 1024 * 1024

# Disk full and disk quota are the file store's real hard limit
_CAPACITY_ERRNOS = frozenset(
    code for code in (errno.ENOSPC, getattr(errno, "EDQUOT", None)) if code is not None
)

_temp_files_registry: set[Path] = set()


def _cleanup_temp_files() -> None:
    """Remove temporary files left behind by interrupted writes."""
    for temp_path in list(_temp_files_registry):
        try:
            if temp_path.exists():
                temp_path.unlink()
                logger.debug(f"Cleaned up temp file on exit: {temp_path}")
        except OSError as e:
            logger.warning(f"Failed to cleanup temp file {temp_path}: {e}")


atexit.register(_cleanup_temp_files)


def atomic_write(path: Path, content: str) -> None:
    """Write text to path via temp file + rename.

    Args:
        path: Destination path
        content: Text to write (UTF-8)

    Raises:
        StoragePermissionError: If write permission denied
        CapacityExceededError: If the disk is full or over quota
        StorageError: If operation fails
    """
    content_bytes = content.encode("utf-8")

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except PermissionError as e:
        raise StoragePermissionError(
            f"Cannot create directory {path.parent}: permission denied"
        ) from e
    except OSError as e:
        raise StorageError(f"Failed to create directory {path.parent}: {e}") from e

    tmp_path = None
    try:
        # Same directory as target so the rename stays on one filesystem
        with tempfile.NamedTemporaryFile(
            mode="wb",
            dir=path.parent,
            delete=False,
            prefix=f".{path.name}.",
            suffix=".tmp",
        ) as tmp_file:
            tmp_path = Path(tmp_file.name)
            _temp_files_registry.add(tmp_path)

            tmp_file.write(content_bytes)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())

        tmp_path.replace(path)
        _temp_files_registry.discard(tmp_path)
        logger.debug(f"Saved {len(content_bytes)} bytes to {path}")

    except PermissionError as e:
        raise StoragePermissionError(f"Cannot write to {path}: permission denied") from e
    except OSError as e:
        if e.errno in _CAPACITY_ERRNOS:
            raise CapacityExceededError(f"No space left to write {path}: {e}") from e
        raise StorageError(f"Failed to write {path}: {e}") from e
    finally:
        if tmp_path is not None:
            _temp_files_registry.discard(tmp_path)
            if tmp_path.exists():
                with contextlib.suppress(OSError):
                    tmp_path.unlink()


class FileStore(BoundedStore):
    """Bounded store persisted as a single JSON object on disk.

    The whole mapping is kept in memory and flushed atomically after each
    mutation, so a crash never leaves a half-written file. Capacity is
    enforced on the same key+value length measure the guard uses.

    Example:
        ```python
        store = FileStore(Path("~/.local/share/mailscanner/local_storage.json"))
        store.set("auth_token", token)
        ```
    """

    def __init__(self, path: Path, capacity: int | None = DEFAULT_CAPACITY) -> None:
        """Load the store from path (missing file means empty).

        Args:
            path: JSON file location
            capacity: Hard capacity in characters (None for unbounded)

        Raises:
            StorageCorruptedError: If the file is not a JSON string-to-string object
            StoragePermissionError: If read permission denied
            StorageError: If the file cannot be read
        """
        self.path = path
        self.capacity = capacity
        self._data = self._load()

    def _load(self) -> dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except PermissionError as e:
            raise StoragePermissionError(f"Cannot read {self.path}: permission denied") from e
        except UnicodeDecodeError as e:
            raise StorageCorruptedError(f"Invalid UTF-8 encoding in {self.path}: {e}") from e
        except OSError as e:
            raise StorageError(f"Failed to read {self.path}: {e}") from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageCorruptedError(f"Invalid JSON in {self.path}: {e}") from e

        if not isinstance(data, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in data.items()
        ):
            raise StorageCorruptedError(f"{self.path} does not hold a string-to-string object")

        logger.debug(f"Loaded {len(data)} entries from {self.path}")
        return data

    def _flush(self, data: dict[str, str]) -> None:
        atomic_write(self.path, json.dumps(data, ensure_ascii=False, indent=2))
        self._data = data

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        updated = dict(self._data)
        updated[key] = value
        if self.capacity is not None:
            new_size = sum(len(k) + len(v) for k, v in updated.items())
            if new_size > self.capacity:
                raise CapacityExceededError(
                    f"Writing '{key}' would use {new_size} of {self.capacity} characters",
                    key=key,
                )
        self._flush(updated)

    def delete(self, key: str) -> None:
        if key not in self._data:
            return
        updated = dict(self._data)
        del updated[key]
        self._flush(updated)

    def clear(self) -> None:
        self._flush({})

    def keys(self) -> list[str]:
        return list(self._data)
