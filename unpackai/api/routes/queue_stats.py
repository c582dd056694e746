"""Queue Statistics Router.

Monitoring data for the job queue.

Endpoints:
- GET /api/queue-stats - Queue length, worker bound and health
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from unpackai.api.deps import get_config, get_current_user, get_runtime
from unpackai.core.auth import CallerIdentity
from unpackai.core.config import Config
from unpackai.core.jobs import JobRuntime
from unpackai.core.jobs.metrics import set_pending
from unpackai.core.jobs.models import utcnow

router = APIRouter(prefix="/api", tags=["queue"])


class QueueStatsView(BaseModel):
    queueLength: int = Field(..., description="Jobs waiting in the pending list")
    maxConcurrentJobs: int = Field(..., description="Worker pool size")
    activeJobs: int = Field(..., description="Jobs executing in this process")
    timestamp: str
    health: str = Field(..., description="healthy or overloaded")


class QueueStatsResponse(BaseModel):
    success: bool = True
    stats: QueueStatsView


@router.get("/queue-stats", response_model=QueueStatsResponse)
async def queue_stats(
    caller: CallerIdentity = Depends(get_current_user),
    runtime: JobRuntime = Depends(get_runtime),
    config: Config = Depends(get_config),
) -> QueueStatsResponse:
    """Queue statistics. A queue at or above the threshold is overloaded."""
    stats = await runtime.queue.stats()
    set_pending(stats.pending_count)
    return QueueStatsResponse(
        stats=QueueStatsView(
            queueLength=stats.pending_count,
            maxConcurrentJobs=stats.max_concurrency,
            activeJobs=runtime.pool.active_jobs,
            timestamp=utcnow().isoformat(),
            health=stats.health(config.api.overload_threshold),
        )
    )
