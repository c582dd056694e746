"""
Job queue service.

JobQueueService owns the job store. It is the only component that creates
job records and the only reader exposed to the HTTP boundary. Workers use
the claim/complete/fail methods to drive the state machine:

    submit ──→ pending ──claim──→ processing ──complete──→ completed
                                      │
                                      └──────fail───────→ failed

Terminal writes are guarded: they only apply while the stored status is
still ``processing``, so a job that was already failed by the watchdog is
never overwritten by a late worker.
"""

import json
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from unpackai.core.exceptions import JobNotFoundError, ValidationError, sanitize_message
from unpackai.core.jobs.models import (
    Job,
    JobStatus,
    QueueStats,
    new_job_id,
    utcnow,
)
from unpackai.core.jobs.store import JobStore
from unpackai.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_CONCURRENCY = 10
DEFAULT_RETENTION = timedelta(hours=24)
UNKNOWN_ERROR = "Unknown error"

Clock = Callable[[], datetime]


class JobQueueService:
    """
    Submission, status and maintenance operations over a job store.

    Example:
        queue = JobQueueService(RedisJobStore(client))
        job_id = await queue.submit("user-1", {"maxResults": 5})
        job = await queue.get_status(job_id)
    """

    def __init__(
        self,
        store: JobStore,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        retention: timedelta = DEFAULT_RETENTION,
        clock: Clock = utcnow,
        id_factory: Callable[[], str] = new_job_id,
    ) -> None:
        """
        Initialize the queue service.

        Args:
            store: Backend holding job records and the pending list.
            max_concurrency: Worker pool size reported by stats().
            retention: Age after which terminal jobs are deleted.
            clock: Source of the current time (UTC).
            id_factory: Generator of new job ids.
        """
        self.store = store
        self.max_concurrency = max_concurrency
        self.retention = retention
        self._clock = clock
        self._id_factory = id_factory

    # ------------------------------------------------------------------
    # Caller-facing operations
    # ------------------------------------------------------------------

    async def submit(self, owner_id: str, config: Any) -> str:
        """
        Create a pending job and enqueue it.

        Returns immediately; execution happens in the worker pool.

        Raises:
            ValidationError: If config is not JSON-serializable.
            StoreUnavailableError: If the store cannot be reached. The job
                was not queued.
        """
        try:
            json.dumps(config)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Job config is not JSON-serializable: {e}") from e

        job = Job(
            id=self._id_factory(),
            owner_id=owner_id,
            config=config,
            created_at=self._clock(),
        )
        await self.store.create(job)
        logger.info("Job submitted", job_id=job.id, owner=owner_id)
        return job.id

    async def get_status(self, job_id: str) -> Optional[Job]:
        """Read a job record. Returns None if the id is unknown."""
        return await self.store.load(job_id)

    async def require(self, job_id: str) -> Job:
        """Like get_status(), but raises JobNotFoundError for unknown ids."""
        job = await self.store.load(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def stats(self) -> QueueStats:
        return QueueStats(
            pending_count=await self.store.pending_count(),
            max_concurrency=self.max_concurrency,
        )

    async def cleanup(self, retention: Optional[timedelta] = None) -> int:
        """
        Delete terminal jobs that finished before the retention window.

        Pending and processing jobs are never deleted, whatever their age.

        Args:
            retention: Override of the configured retention window.

        Returns:
            Number of jobs deleted.
        """
        cutoff = self._clock() - (retention or self.retention)
        deleted = 0
        async for job_id in self.store.scan_ids():
            job = await self.store.load(job_id)
            if job is None or not job.is_terminal:
                continue
            finished_at = job.completed_at or job.created_at
            if finished_at < cutoff and await self.store.delete(job_id):
                deleted += 1

        if deleted:
            logger.info("Cleaned up expired jobs", deleted=deleted)
        return deleted

    # ------------------------------------------------------------------
    # Worker-facing operations
    # ------------------------------------------------------------------

    async def claim(
        self,
        worker_id: str,
        timeout: float,
        still_wanted: Optional[Callable[[], bool]] = None,
    ) -> Optional[Job]:
        """
        Pop the next pending id and mark the job processing.

        The pop is destructive, so no other worker can receive the same id.

        Args:
            worker_id: Identifier recorded on the job.
            timeout: Seconds to block waiting for work.
            still_wanted: Checked after the pop. When it returns False the id
                is pushed back to the head of the pending list untouched.

        Returns:
            The claimed job, or None if nothing was claimable.
        """
        job_id = await self.store.pop_pending(timeout)
        if job_id is None:
            return None
        if still_wanted is not None and not still_wanted():
            await self.store.requeue(job_id)
            logger.info("Returned job to pending list", job_id=job_id)
            return None

        job = await self.store.load(job_id)
        if job is None:
            logger.warning("Dequeued id has no job record", job_id=job_id)
            return None
        if job.status is not JobStatus.PENDING:
            logger.warning(
                "Dequeued job is not pending", job_id=job_id, status=job.status.value
            )
            return None

        job.status = JobStatus.PROCESSING
        job.started_at = max(self._clock(), job.created_at)
        job.worker_id = worker_id
        if not await self.store.transition(job_id, JobStatus.PENDING, job):
            logger.warning("Job changed state before claim", job_id=job_id)
            return None
        return job

    async def complete(self, job_id: str, result: Any) -> bool:
        """
        Record a successful outcome.

        Non-dict results are wrapped as {"result": value}, so a completed
        job always carries a result.

        Returns:
            False if the job is no longer processing (already terminal).

        Raises:
            ValidationError: If result is not JSON-serializable.
        """
        if not isinstance(result, dict):
            result = {"result": result}
        try:
            json.dumps(result)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Job result is not JSON-serializable: {e}") from e
        return await self._finish(job_id, JobStatus.COMPLETED, result=result)

    async def fail(self, job_id: str, error: Optional[str]) -> bool:
        """
        Record a failure. Empty messages are stored as "Unknown error".

        Returns:
            False if the job is no longer processing (already terminal).
        """
        message = sanitize_message(error or "") or UNKNOWN_ERROR
        return await self._finish(job_id, JobStatus.FAILED, error=message)

    async def _finish(
        self,
        job_id: str,
        status: JobStatus,
        result: Any = None,
        error: Optional[str] = None,
    ) -> bool:
        job = await self.store.load(job_id)
        if job is None or job.status is not JobStatus.PROCESSING:
            logger.warning(
                "Ignoring terminal write for job not in processing",
                job_id=job_id,
                status=job.status.value if job else None,
            )
            return False

        job.status = status
        job.completed_at = max(self._clock(), job.started_at or job.created_at)
        job.result = result if status is JobStatus.COMPLETED else None
        job.error = error if status is JobStatus.FAILED else None

        written = await self.store.transition(job_id, JobStatus.PROCESSING, job)
        if not written:
            logger.warning("Job finished concurrently, write rejected", job_id=job_id)
        return written

    async def fail_stale(self, max_processing: timedelta) -> int:
        """
        Fail jobs that have been processing longer than max_processing.

        Covers workers that died mid-job and left the record behind.

        Returns:
            Number of jobs failed.
        """
        now = self._clock()
        cutoff = now - max_processing
        failed = 0
        async for job_id in self.store.scan_ids():
            job = await self.store.load(job_id)
            if job is None or job.status is not JobStatus.PROCESSING:
                continue
            if job.started_at is None or job.started_at >= cutoff:
                continue

            job.status = JobStatus.FAILED
            job.completed_at = now
            job.error = (
                "Job exceeded processing ceiling of "
                f"{max_processing.total_seconds():g}s"
            )
            if await self.store.transition(job_id, JobStatus.PROCESSING, job):
                failed += 1
                logger.warning(
                    "Failed stale job", job_id=job_id, worker=job.worker_id
                )
        return failed
