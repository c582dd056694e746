"""
Shared pytest fixtures and configuration for UnpackAI tests.

Fixture Organization
--------------------
- **clean_env**: Environment without UnpackAI/Redis/N8n overrides
- **clock**: Controllable UTC clock for the queue service
- **memory_store**: In-process job store
- **queue**: JobQueueService over memory_store driven by clock
- **StubExecutor**: Pipeline executor double with latency, results and
  failures, which records call order and concurrency
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Generator, List, Optional

import pytest

from unpackai.core.config import Config, StoreConfig
from unpackai.core.jobs import InMemoryJobStore, JobQueueService

ENV_OVERRIDES = (
    "REDIS_URL",
    "REDIS_HOST",
    "REDIS_PORT",
    "REDIS_PASSWORD",
    "REDIS_DB",
    "UNPACKAI_STORE_BACKEND",
    "UNPACKAI_MAX_WORKERS",
    "UNPACKAI_JOB_TIMEOUT",
    "UNPACKAI_API_HOST",
    "UNPACKAI_API_PORT",
    "UNPACKAI_LOG_LEVEL",
    "UNPACKAI_CONFIG",
    "N8N_WEBHOOK_URL",
    "N8N_API_KEY",
    "JWT_SECRET",
)


# ============================================================================
# Environment and Time
# ============================================================================


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Remove every environment override read by the config loader."""
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    yield


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ============================================================================
# Queue Fixtures
# ============================================================================


@pytest.fixture
def memory_store() -> InMemoryJobStore:
    return InMemoryJobStore()


@pytest.fixture
def queue(memory_store: InMemoryJobStore, clock: FakeClock) -> JobQueueService:
    return JobQueueService(memory_store, max_concurrency=10, clock=clock)


@pytest.fixture
def memory_config(clean_env: None) -> Config:
    """Default config with the in-memory backend."""
    return Config(store=StoreConfig(backend="memory"))


# ============================================================================
# Executor Double
# ============================================================================


class StubExecutor:
    """
    Pipeline executor double.

    Args:
        result: Returned by every call unless error is set.
        error: Raised by every call.
        delay: Seconds each call sleeps before finishing.
        results: Per-job overrides keyed by job id.
    """

    def __init__(
        self,
        result: Any = None,
        error: Optional[BaseException] = None,
        delay: float = 0.0,
        results: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.result = result if result is not None else {"articles": []}
        self.error = error
        self.delay = delay
        self.results = results or {}
        self.calls: List[str] = []
        self.configs: List[Any] = []
        self.active = 0
        self.peak = 0

    async def execute(self, config: Any, *, job_id: str) -> Any:
        self.calls.append(job_id)
        self.configs.append(config)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            return self.results.get(job_id, self.result)
        finally:
            self.active -= 1


@pytest.fixture
def stub_executor() -> StubExecutor:
    return StubExecutor()


async def wait_until_terminal(
    queue: JobQueueService, job_ids: List[str], timeout: float = 5.0
) -> None:
    """Poll until every job is terminal, like a client would."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        jobs = [await queue.get_status(job_id) for job_id in job_ids]
        if all(job is not None and job.is_terminal for job in jobs):
            return
        if loop.time() > deadline:
            raise AssertionError(f"Jobs not terminal after {timeout}s: {jobs}")
        await asyncio.sleep(0.01)
