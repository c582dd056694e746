"""
Worker pool for background job processing.

A supervisor that owns a fixed set of long-lived async workers. Each worker
blocks on the pending list, runs the pipeline executor under a deadline and
records the terminal state. Workers do not exit when the queue is idle, so
the pool is started once and the concurrency ceiling is exact.
"""

import asyncio
from typing import TYPE_CHECKING, Any, List, Optional

from unpackai.core.exceptions import (
    ExecutionTimeoutError,
    StoreUnavailableError,
    UnpackAIError,
)
from unpackai.core.jobs.metrics import ACTIVE_JOBS, track_job_outcome
from unpackai.core.jobs.models import Job, JobStatus
from unpackai.core.jobs.queue import JobQueueService
from unpackai.core.logging import JobLogger, get_logger

if TYPE_CHECKING:
    from unpackai.pipeline.executor import PipelineExecutor

logger = get_logger(__name__)

DEFAULT_MAX_WORKERS = 10
DEFAULT_POP_TIMEOUT = 5.0
DEFAULT_JOB_TIMEOUT = 300.0
DEFAULT_SHUTDOWN_GRACE = 30.0
SHUTDOWN_ERROR = "Worker shut down before the job finished"


class WorkerPool:
    """
    Manages async workers for job processing.

    Example:
        pool = WorkerPool(queue, executor, max_workers=10)
        pool.start()
        ...
        await pool.stop()
    """

    def __init__(
        self,
        queue: JobQueueService,
        executor: "PipelineExecutor",
        max_workers: int = DEFAULT_MAX_WORKERS,
        pop_timeout: float = DEFAULT_POP_TIMEOUT,
        job_timeout: float = DEFAULT_JOB_TIMEOUT,
        error_backoff: float = 1.0,
    ):
        """
        Initialize worker pool.

        Args:
            queue: Queue service to claim jobs from.
            executor: Pipeline executor invoked once per job.
            max_workers: Number of concurrent workers.
            pop_timeout: Seconds each blocking pop waits before re-checking
                whether the pool is still running.
            job_timeout: Deadline for a single executor call.
            error_backoff: Seconds to pause after an unexpected loop error.
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.queue = queue
        self.executor = executor
        self.max_workers = max_workers
        self.pop_timeout = pop_timeout
        self.job_timeout = job_timeout
        self.error_backoff = error_backoff
        self._running = False
        self._tasks: List[asyncio.Task[None]] = []
        self._active = 0
        self._peak = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def active_jobs(self) -> int:
        """Jobs currently executing."""
        return self._active

    @property
    def peak_active_jobs(self) -> int:
        """Highest number of jobs that executed at the same time."""
        return self._peak

    def start(self) -> None:
        """Spawn the workers. Calling start() on a running pool is a no-op."""
        if self._running:
            return
        self._running = True
        for i in range(self.max_workers):
            worker_id = f"worker-{i}"
            task = asyncio.create_task(self._worker_loop(worker_id), name=worker_id)
            self._tasks.append(task)
        logger.info("Worker pool started", workers=self.max_workers)

    async def stop(self, grace: float = DEFAULT_SHUTDOWN_GRACE) -> None:
        """
        Stop all workers.

        Workers stop claiming immediately; an id popped after that is pushed
        back onto the pending list. In-flight jobs get up to grace
        seconds to finish; workers still busy after that are cancelled and
        their jobs are marked failed.
        """
        self._running = False
        if not self._tasks:
            return

        _, pending = await asyncio.wait(self._tasks, timeout=grace)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning("Cancelled workers after grace period", count=len(pending))

        self._tasks.clear()
        logger.info("Worker pool stopped")

    async def wait(self) -> None:
        """
        Block until every worker task has exited.

        Cancelling the caller leaves the workers running, so stop() can
        still give in-flight jobs their grace period.
        """
        if self._tasks:
            await asyncio.wait(self._tasks)

    async def _worker_loop(self, worker_id: str) -> None:
        """Main worker loop."""
        log = get_logger(f"{__name__}.{worker_id}").bind(worker=worker_id)
        while self._running:
            try:
                job = await self.queue.claim(
                    worker_id, self.pop_timeout, still_wanted=lambda: self._running
                )
                if job is not None:
                    await self._process_job(job, worker_id)
            except asyncio.CancelledError:
                break
            except StoreUnavailableError as e:
                log.error("Job store unavailable, backing off", error=e)
                await asyncio.sleep(self.pop_timeout)
            except Exception:
                log.exception("Unexpected error in worker loop")
                await asyncio.sleep(self.error_backoff)

    async def _process_job(self, job: Job, worker_id: str) -> None:
        """Run one claimed job to a terminal state."""
        jlog = JobLogger(job.id, worker_id)
        jlog.claimed()
        self._active += 1
        self._peak = max(self._peak, self._active)
        ACTIVE_JOBS.inc()
        try:
            result = await self._execute_with_deadline(job)
            written = await self.queue.complete(job.id, result)
        except asyncio.CancelledError:
            await self._fail_quietly(job.id, SHUTDOWN_ERROR)
            jlog.finish(success=False, error=SHUTDOWN_ERROR)
            raise
        except StoreUnavailableError:
            raise
        except Exception as e:
            error = str(e)
            written = await self.queue.fail(job.id, error)
            jlog.finish(success=False, error=error)
            if written:
                track_job_outcome(JobStatus.FAILED.value, jlog.elapsed())
        else:
            jlog.finish(success=True)
            if written:
                track_job_outcome(JobStatus.COMPLETED.value, jlog.elapsed())
        finally:
            self._active -= 1
            ACTIVE_JOBS.dec()

    async def _execute_with_deadline(self, job: Job) -> Any:
        """
        Run the executor for job, raising ExecutionTimeoutError only when
        job_timeout elapses. Errors raised by the executor itself, including
        its own TimeoutError, propagate unchanged.
        """
        call = asyncio.ensure_future(self.executor.execute(job.config, job_id=job.id))
        try:
            done, _ = await asyncio.wait({call}, timeout=self.job_timeout)
        except asyncio.CancelledError:
            call.cancel()
            raise
        if not done:
            call.cancel()
            await asyncio.gather(call, return_exceptions=True)
            raise ExecutionTimeoutError(self.job_timeout)
        return call.result()

    async def _fail_quietly(self, job_id: str, error: str) -> Optional[bool]:
        try:
            return await self.queue.fail(job_id, error)
        except UnpackAIError as e:
            logger.error("Could not record job failure", job_id=job_id, error=e)
            return None
