"""
Periodic maintenance for the job store.

Runs the retention cleanup and the stale-processing watchdog on a fixed
interval. The sleep function is injected so tests can drive time.
"""

import asyncio
from dataclasses import dataclass
from datetime import timedelta
from typing import Awaitable, Callable, Optional

from unpackai.core.jobs.metrics import set_pending
from unpackai.core.jobs.queue import JobQueueService
from unpackai.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_INTERVAL_SECONDS = 3600.0
DEFAULT_STALE_AFTER = timedelta(minutes=15)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class MaintenanceReport:
    """Outcome of one maintenance pass."""

    deleted: int = 0
    failed_stale: int = 0


class MaintenanceScheduler:
    """Runs cleanup and the stale-job watchdog every interval seconds."""

    def __init__(
        self,
        queue: JobQueueService,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        retention: Optional[timedelta] = None,
        stale_after: Optional[timedelta] = DEFAULT_STALE_AFTER,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """
        Args:
            queue: Queue service to maintain.
            interval: Seconds between passes.
            retention: Retention window; defaults to the queue's own.
            stale_after: Processing ceiling for the watchdog. None or zero
                disables it.
            sleep: Coroutine function used to wait between passes.
        """
        self.queue = queue
        self.interval = interval
        self.retention = retention
        self.stale_after = stale_after
        self._sleep = sleep
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> MaintenanceReport:
        """Run a single pass. Store errors propagate to the caller."""
        deleted = await self.queue.cleanup(self.retention)
        failed_stale = 0
        if self.stale_after:
            failed_stale = await self.queue.fail_stale(self.stale_after)
        stats = await self.queue.stats()
        set_pending(stats.pending_count)
        return MaintenanceReport(deleted=deleted, failed_stale=failed_stale)

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run(), name="job-maintenance")
        logger.info("Maintenance scheduler started", interval_sec=self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Maintenance scheduler stopped")

    async def _run(self) -> None:
        while True:
            try:
                report = await self.run_once()
                if report.deleted or report.failed_stale:
                    logger.info(
                        "Maintenance pass",
                        deleted=report.deleted,
                        failed_stale=report.failed_stale,
                    )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Maintenance pass failed", error=e)
            await self._sleep(self.interval)
