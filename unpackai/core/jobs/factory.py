"""
Factory functions for job stores, queues and the worker runtime.

Provides convenience functions that turn a Config into wired-up objects.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Optional

from redis.asyncio import Redis

from unpackai.core.config import Config, RedisConfig
from unpackai.core.jobs.queue import JobQueueService
from unpackai.core.jobs.scheduler import MaintenanceScheduler
from unpackai.core.jobs.store import InMemoryJobStore, JobStore, RedisJobStore
from unpackai.core.jobs.worker import WorkerPool
from unpackai.core.logging import get_logger

if TYPE_CHECKING:
    from unpackai.pipeline.executor import PipelineExecutor

logger = get_logger(__name__)

# BRPOP blocks server-side; the socket must outlive it.
SOCKET_TIMEOUT_MARGIN = 5.0


def create_redis_client(config: RedisConfig, pop_timeout: float = 5.0) -> Redis:
    """
    Create an async Redis client.

    Args:
        config: Connection settings. url takes precedence when set.
        pop_timeout: Blocking pop timeout the client must accommodate.

    Returns:
        Client returning str values.
    """
    socket_timeout = max(
        config.socket_timeout_seconds, pop_timeout + SOCKET_TIMEOUT_MARGIN
    )
    if config.url:
        return Redis.from_url(
            config.url, decode_responses=True, socket_timeout=socket_timeout
        )
    return Redis(
        host=config.host,
        port=config.port,
        password=config.password or None,
        db=config.db,
        decode_responses=True,
        socket_timeout=socket_timeout,
    )


def create_job_store(config: Optional[Config] = None) -> JobStore:
    """
    Create the job store selected by store.backend.

    Args:
        config: Configuration. Defaults to Config().

    Returns:
        RedisJobStore or InMemoryJobStore.
    """
    config = config or Config()
    if config.store.backend == "memory":
        logger.warning("Using in-memory job store; jobs do not survive restarts")
        return InMemoryJobStore()

    client = create_redis_client(config.store.redis, config.queue.pop_timeout_seconds)
    return RedisJobStore(
        client,
        key_prefix=config.store.key_prefix,
        queue_key=config.store.queue_key,
    )


def create_job_queue(
    config: Optional[Config] = None, store: Optional[JobStore] = None
) -> JobQueueService:
    """
    Create a job queue service.

    Args:
        config: Configuration. Defaults to Config().
        store: Store to use instead of the configured backend.

    Returns:
        JobQueueService instance.
    """
    config = config or Config()
    return JobQueueService(
        store or create_job_store(config),
        max_concurrency=config.queue.max_workers,
        retention=timedelta(hours=config.queue.retention_hours),
    )


@dataclass
class JobRuntime:
    """The queue service together with the workers and maintenance that drive it."""

    queue: JobQueueService
    pool: WorkerPool
    scheduler: MaintenanceScheduler
    executor: "PipelineExecutor"
    shutdown_grace: float = 30.0

    def start(self) -> None:
        self.pool.start()
        self.scheduler.start()

    async def stop(self) -> None:
        """Stop workers and maintenance, then release connections."""
        await self.scheduler.stop()
        await self.pool.stop(grace=self.shutdown_grace)
        close = getattr(self.executor, "close", None)
        if close is not None:
            await close()
        await self.queue.store.close()


def create_runtime(
    config: Optional[Config] = None,
    executor: Optional["PipelineExecutor"] = None,
    store: Optional[JobStore] = None,
) -> JobRuntime:
    """
    Wire up queue, worker pool and scheduler from configuration.

    Args:
        config: Configuration. Defaults to Config().
        executor: Pipeline executor. Defaults to the webhook executor.
        store: Store to use instead of the configured backend.

    Returns:
        JobRuntime, not yet started.
    """
    config = config or Config()
    if executor is None:
        from unpackai.pipeline.executor import create_executor

        executor = create_executor(config)

    queue = create_job_queue(config, store)
    q = config.queue
    pool = WorkerPool(
        queue,
        executor,
        max_workers=q.max_workers,
        pop_timeout=q.pop_timeout_seconds,
        job_timeout=q.job_timeout_seconds,
    )
    scheduler = MaintenanceScheduler(
        queue,
        interval=q.cleanup_interval_seconds,
        stale_after=timedelta(seconds=q.stale_after_seconds),
    )
    return JobRuntime(
        queue=queue,
        pool=pool,
        scheduler=scheduler,
        executor=executor,
        shutdown_grace=q.shutdown_grace_seconds,
    )
