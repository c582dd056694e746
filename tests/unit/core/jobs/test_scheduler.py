"""Tests for the periodic maintenance scheduler."""

import asyncio
from datetime import timedelta
from typing import List
from unittest.mock import AsyncMock

import pytest
from prometheus_client import REGISTRY

from conftest import FakeClock
from unpackai.core.exceptions import StoreUnavailableError
from unpackai.core.jobs import (
    JobQueueService,
    JobStatus,
    MaintenanceReport,
    MaintenanceScheduler,
)


class ControlledSleep:
    """Injected sleep that records intervals and parks after max_passes."""

    def __init__(self, max_passes: int = 2) -> None:
        self.intervals: List[float] = []
        self.max_passes = max_passes
        self.parked = asyncio.Event()

    async def __call__(self, seconds: float) -> None:
        self.intervals.append(seconds)
        if len(self.intervals) >= self.max_passes:
            self.parked.set()
            await asyncio.Event().wait()


async def _finished(queue: JobQueueService) -> str:
    job_id = await queue.submit("user-1", {})
    await queue.claim("worker-0", 0.1)
    await queue.complete(job_id, {})
    return job_id


class TestRunOnce:
    """Tests for MaintenanceScheduler.run_once()."""

    @pytest.mark.asyncio
    async def test_deletes_expired_and_fails_stale(
        self, queue: JobQueueService, clock: FakeClock
    ) -> None:
        expired = [await _finished(queue) for _ in range(3)]
        stuck = await queue.submit("user-1", {})
        await queue.claim("worker-1", 0.1)
        clock.advance(hours=25)
        recent = [await _finished(queue) for _ in range(2)]

        report = await MaintenanceScheduler(queue).run_once()

        assert report == MaintenanceReport(deleted=3, failed_stale=1)
        for job_id in expired:
            assert await queue.get_status(job_id) is None
        for job_id in recent:
            assert await queue.get_status(job_id) is not None
        assert (await queue.get_status(stuck)).status is JobStatus.FAILED

    @pytest.mark.asyncio
    async def test_watchdog_can_be_disabled(
        self, queue: JobQueueService, clock: FakeClock
    ) -> None:
        job_id = await queue.submit("user-1", {})
        await queue.claim("worker-0", 0.1)
        clock.advance(hours=2)

        scheduler = MaintenanceScheduler(queue, stale_after=timedelta(0))
        report = await scheduler.run_once()

        assert report.failed_stale == 0
        assert (await queue.get_status(job_id)).status is JobStatus.PROCESSING

    @pytest.mark.asyncio
    async def test_retention_override(
        self, queue: JobQueueService, clock: FakeClock
    ) -> None:
        await _finished(queue)
        clock.advance(minutes=10)

        scheduler = MaintenanceScheduler(queue, retention=timedelta(minutes=5))

        assert (await scheduler.run_once()).deleted == 1

    @pytest.mark.asyncio
    async def test_publishes_pending_gauge(self, queue: JobQueueService) -> None:
        await queue.submit("user-1", {})
        await queue.submit("user-1", {})

        await MaintenanceScheduler(queue).run_once()

        assert REGISTRY.get_sample_value("unpackai_queue_pending") == 2.0

    @pytest.mark.asyncio
    async def test_store_errors_propagate(self, queue: JobQueueService) -> None:
        queue.cleanup = AsyncMock(side_effect=StoreUnavailableError("down"))

        with pytest.raises(StoreUnavailableError):
            await MaintenanceScheduler(queue).run_once()


class TestSchedulerLoop:
    """Tests for start()/stop()."""

    @pytest.mark.asyncio
    async def test_runs_every_interval(self, queue: JobQueueService) -> None:
        sleep = ControlledSleep(max_passes=2)
        queue.cleanup = AsyncMock(return_value=0)
        scheduler = MaintenanceScheduler(queue, interval=60, sleep=sleep)

        scheduler.start()
        assert scheduler.is_running is True
        await asyncio.wait_for(sleep.parked.wait(), timeout=1)
        await scheduler.stop()

        assert sleep.intervals == [60, 60]
        assert queue.cleanup.await_count == 2
        assert scheduler.is_running is False

    @pytest.mark.asyncio
    async def test_failed_pass_does_not_stop_loop(
        self, queue: JobQueueService
    ) -> None:
        sleep = ControlledSleep(max_passes=3)
        queue.cleanup = AsyncMock(
            side_effect=[StoreUnavailableError("down"), RuntimeError("boom"), 0]
        )
        scheduler = MaintenanceScheduler(queue, interval=1, sleep=sleep)

        scheduler.start()
        await asyncio.wait_for(sleep.parked.wait(), timeout=1)
        await scheduler.stop()

        assert queue.cleanup.await_count == 3

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, queue: JobQueueService) -> None:
        sleep = ControlledSleep(max_passes=1)
        scheduler = MaintenanceScheduler(queue, sleep=sleep)

        scheduler.start()
        first = scheduler._task
        scheduler.start()

        assert scheduler._task is first
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_stop_without_start(self, queue: JobQueueService) -> None:
        await MaintenanceScheduler(queue).stop()
