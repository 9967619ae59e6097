"""Periodic storage usage monitor.

Samples the guard's usage ratio on a fixed interval and logs a warning when
it crosses the monitor threshold. The monitor only observes; it never
cleans up or writes.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from dataclasses import dataclass

from mailscanner.storage.guard import MONITOR_WARNING_RATIO, StorageGuard

logger = logging.getLogger(__name__)


@dataclass
class StorageUsage:
    """Storage usage snapshot."""

    occupied_bytes: int
    max_bytes: int
    ratio: float

    @property
    def percent(self) -> float:
        return self.ratio * 100


class StorageMonitor:
    """Background sampler for storage usage.

    Runs until the task is cancelled or the event loop is torn down.
    ``start()`` returns the asyncio task, and ``stop()`` cancels it; callers
    that never stop it get the run-until-exit behaviour.

    Example:
        ```python
        monitor = StorageMonitor(guard, interval_seconds=60)
        monitor.start()
        ...
        await monitor.stop()  # optional
        ```
    """

    def __init__(
        self,
        guard: StorageGuard,
        interval_seconds: float = 60.0,
        warning_ratio: float = MONITOR_WARNING_RATIO,
        on_warning: Callable[[StorageUsage], None] | None = None,
    ) -> None:
        """Initialize the monitor.

        Args:
            guard: Storage guard to sample
            interval_seconds: Seconds between samples
            warning_ratio: Usage ratio above which a warning is emitted
            on_warning: Optional callback invoked with each warning sample
        """
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self.guard = guard
        self.interval = interval_seconds
        self.warning_ratio = warning_ratio
        self._on_warning = on_warning
        self._task: asyncio.Task[None] | None = None
        self.warning_count = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sample(self) -> StorageUsage:
        """Take a usage snapshot."""
        occupied = self.guard.occupied_size()
        return StorageUsage(
            occupied_bytes=occupied,
            max_bytes=self.guard.max_size,
            ratio=occupied / self.guard.max_size,
        )

    def check(self) -> bool:
        """Sample usage once and warn if it is above the threshold.

        Returns:
            True if usage is within the threshold (or could not be sampled)
        """
        try:
            usage = self.sample()
        except Exception as e:
            logger.warning(f"Failed to sample storage usage: {e}")
            return True

        if usage.ratio <= self.warning_ratio:
            return True

        self.warning_count += 1
        logger.warning(f"Storage usage: {usage.percent:.2f}%")

        if self._on_warning:
            try:
                self._on_warning(usage)
            except Exception as e:
                logger.exception(f"Error in storage warning callback: {e}")

        return False

    async def _run_loop(self) -> None:
        logger.info(f"Storage monitor started (interval: {self.interval}s)")
        try:
            while True:
                await asyncio.sleep(self.interval)
                self.check()
        finally:
            logger.info("Storage monitor stopped")

    def start(self) -> asyncio.Task[None]:
        """Schedule the monitor on the running event loop.

        Returns:
            The background task (also the handle for cancellation)

        Raises:
            RuntimeError: If called outside a running event loop
        """
        task = self._task
        if task is not None and not task.done():
            logger.warning("Storage monitor already running")
            return task

        self._task = asyncio.create_task(self._run_loop(), name="storage-monitor")
        logger.debug("Storage monitor task created")
        return self._task

    async def stop(self) -> None:
        """Cancel the background task and wait for it to finish."""
        if self._task is None:
            return

        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None


def start_storage_monitoring(
    guard: StorageGuard,
    interval_ms: int = 60_000,
    warning_ratio: float = MONITOR_WARNING_RATIO,
) -> StorageMonitor:
    """Start a storage monitor sampling every ``interval_ms`` milliseconds.

    Args:
        guard: Storage guard to sample
        interval_ms: Milliseconds between samples (default: 60 seconds)
        warning_ratio: Usage ratio above which a warning is emitted

    Returns:
        The started monitor; keep it to cancel via ``await monitor.stop()``
    """
    monitor = StorageMonitor(guard, interval_seconds=interval_ms / 1000, warning_ratio=warning_ratio)
    monitor.start()
    return monitor
