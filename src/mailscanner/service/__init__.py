"""Background services."""

from __future__ import annotations

from mailscanner.service.storage_monitor import (
    StorageMonitor,
    StorageUsage,
    start_storage_monitoring,
)

__all__ = [
    "StorageMonitor",
    "StorageUsage",
    "start_storage_monitoring",
]
