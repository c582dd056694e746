"""
Job store implementations.

Provides the abstract JobStore protocol, the Redis-backed durable store and
an in-process store for deployments without Redis.

Record layout (Redis)
---------------------
    job:<id>     HASH  id, owner_id, config, status, created_at,
                       started_at, completed_at, result, error, worker_id
    job_queue    LIST  pending job ids; LPUSH on submit, BRPOP by workers

The pop is destructive, so an id is handed to exactly one worker.
"""

import asyncio
from collections import deque
from typing import AsyncIterator, Deque, Dict, List, Optional, Protocol

from redis.asyncio import Redis
from redis.exceptions import RedisError

from unpackai.core.exceptions import StoreUnavailableError
from unpackai.core.jobs.models import Job, JobStatus
from unpackai.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_KEY_PREFIX = "job:"
DEFAULT_QUEUE_KEY = "job_queue"
SCAN_BATCH_SIZE = 500

# Conditional HSET: write the field/value pairs only while the stored
# status equals ARGV[1]. Missing records compare unequal.
TRANSITION_SCRIPT = """
local current = redis.call('HGET', KEYS[1], 'status')
if current ~= ARGV[1] then
    return 0
end
for i = 2, #ARGV, 2 do
    redis.call('HSET', KEYS[1], ARGV[i], ARGV[i + 1])
end
return 1
"""


class JobStore(Protocol):
    """Abstract interface for job store backends."""

    async def create(self, job: Job) -> None:
        """Write the job record and push its id onto the pending list."""
        ...

    async def load(self, job_id: str) -> Optional[Job]:
        """Read a job record, or None if absent."""
        ...

    async def transition(self, job_id: str, expected: JobStatus, job: Job) -> bool:
        """Write job's fields only if the stored status equals expected."""
        ...

    async def pop_pending(self, timeout: float) -> Optional[str]:
        """Remove and return the oldest pending id, waiting up to timeout."""
        ...

    async def requeue(self, job_id: str) -> None:
        """Put a popped id back at the head of the pending list."""
        ...

    async def pending_count(self) -> int:
        """Current length of the pending list."""
        ...

    def scan_ids(self) -> AsyncIterator[str]:
        """Iterate over every stored job id."""
        ...

    async def delete(self, job_id: str) -> bool:
        """Delete a job record. Returns True if it existed."""
        ...

    async def ping(self) -> bool:
        """Whether the store is reachable."""
        ...

    async def close(self) -> None:
        """Release connections."""
        ...


class RedisJobStore:
    """
    Redis-backed job store.

    Every Redis or socket error is surfaced as StoreUnavailableError so
    callers can tell infrastructure trouble from a missing or failed job.
    """

    def __init__(
        self,
        client: Redis,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        queue_key: str = DEFAULT_QUEUE_KEY,
    ) -> None:
        """
        Initialize the Redis job store.

        Args:
            client: redis.asyncio client created with decode_responses=True.
            key_prefix: Prefix of per-job hash keys.
            queue_key: Key of the pending list.
        """
        self._redis = client
        self.key_prefix = key_prefix
        self.queue_key = queue_key

    def _key(self, job_id: str) -> str:
        return f"{self.key_prefix}{job_id}"

    async def create(self, job: Job) -> None:
        """Write record and enqueue id in one MULTI/EXEC transaction."""
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.hset(self._key(job.id), mapping=job.to_mapping())
                pipe.lpush(self.queue_key, job.id)
                await pipe.execute()
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(f"Could not enqueue job {job.id}: {e}") from e

    async def load(self, job_id: str) -> Optional[Job]:
        try:
            data = await self._redis.hgetall(self._key(job_id))
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(f"Could not read job {job_id}: {e}") from e
        if not data or "id" not in data:
            return None
        return Job.from_mapping(data)

    async def transition(self, job_id: str, expected: JobStatus, job: Job) -> bool:
        args: List[str] = [expected.value]
        for name, value in job.to_mapping().items():
            args.extend((name, value))
        try:
            written = await self._redis.eval(
                TRANSITION_SCRIPT, 1, self._key(job_id), *args
            )
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(f"Could not update job {job_id}: {e}") from e
        return bool(written)

    async def pop_pending(self, timeout: float) -> Optional[str]:
        try:
            item = await self._redis.brpop([self.queue_key], timeout=timeout)
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(f"Could not pop pending job: {e}") from e
        if not item:
            return None
        return item[1]

    async def requeue(self, job_id: str) -> None:
        # BRPOP takes from the right, so RPUSH makes this id the next one out.
        try:
            await self._redis.rpush(self.queue_key, job_id)
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(f"Could not requeue job {job_id}: {e}") from e

    async def pending_count(self) -> int:
        try:
            return int(await self._redis.llen(self.queue_key))
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(f"Could not read queue length: {e}") from e

    async def scan_ids(self) -> AsyncIterator[str]:
        prefix_len = len(self.key_prefix)
        try:
            async for key in self._redis.scan_iter(
                match=f"{self.key_prefix}*", count=SCAN_BATCH_SIZE
            ):
                yield key[prefix_len:]
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(f"Could not scan jobs: {e}") from e

    async def delete(self, job_id: str) -> bool:
        try:
            return bool(await self._redis.delete(self._key(job_id)))
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(f"Could not delete job {job_id}: {e}") from e

    async def ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except (RedisError, OSError) as e:
            logger.warning("Redis ping failed", error=e)
            return False

    async def close(self) -> None:
        await self._redis.aclose()


class InMemoryJobStore:
    """
    In-process job store for deployments without Redis.

    Keeps the same text mapping the Redis store keeps, so serialization
    behaves identically. State is lost when the process exits.
    """

    POLL_INTERVAL = 0.05

    def __init__(self) -> None:
        self._records: Dict[str, Dict[str, str]] = {}
        self._pending: Deque[str] = deque()

    async def create(self, job: Job) -> None:
        self._records[job.id] = job.to_mapping()
        self._pending.append(job.id)

    async def load(self, job_id: str) -> Optional[Job]:
        data = self._records.get(job_id)
        if data is None:
            return None
        return Job.from_mapping(dict(data))

    async def transition(self, job_id: str, expected: JobStatus, job: Job) -> bool:
        # No await between the check and the write, so this is atomic
        # with respect to other coroutines on the loop.
        record = self._records.get(job_id)
        if record is None or record.get("status") != expected.value:
            return False
        record.update(job.to_mapping())
        return True

    async def pop_pending(self, timeout: float) -> Optional[str]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            if self._pending:
                return self._pending.popleft()
            remaining = deadline - loop.time()
            if remaining <= 0:
                return None
            await asyncio.sleep(min(self.POLL_INTERVAL, remaining))

    async def requeue(self, job_id: str) -> None:
        self._pending.appendleft(job_id)

    async def pending_count(self) -> int:
        return len(self._pending)

    async def scan_ids(self) -> AsyncIterator[str]:
        for job_id in list(self._records):
            yield job_id

    async def delete(self, job_id: str) -> bool:
        return self._records.pop(job_id, None) is not None

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None
