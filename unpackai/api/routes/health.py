"""Health API Endpoint.

Endpoints:
- GET /health - Job store reachability and worker pool state
"""

from __future__ import annotations

import time

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from unpackai import __version__
from unpackai.api.deps import get_config, get_runtime
from unpackai.core.config import Config
from unpackai.core.jobs import JobRuntime
from unpackai.core.jobs.models import utcnow
from unpackai.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])

_module_start_time: float = time.time()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(
        ..., description="Overall health status: healthy, degraded, unhealthy"
    )
    version: str = Field(..., description="Application version")
    timestamp: str = Field(..., description="ISO 8601 timestamp")
    uptime_seconds: float = Field(default=0.0, description="Server uptime in seconds")
    store_backend: str = Field(..., description="Job store backend")
    store_healthy: bool = Field(..., description="Whether the job store answers")
    workers_running: bool = Field(..., description="Whether the worker pool runs")


@router.get("/health", response_model=HealthResponse)
async def health_check(
    runtime: JobRuntime = Depends(get_runtime),
    config: Config = Depends(get_config),
) -> HealthResponse:
    """Health check endpoint.

    - "healthy": store reachable and workers running
    - "degraded": store reachable but workers stopped
    - "unhealthy": store unreachable
    """
    store_healthy = await runtime.queue.store.ping()
    workers_running = runtime.pool.is_running

    if not store_healthy:
        status = "unhealthy"
        logger.warning("Job store unreachable", backend=config.store.backend)
    elif not workers_running:
        status = "degraded"
    else:
        status = "healthy"

    return HealthResponse(
        status=status,
        version=__version__,
        timestamp=utcnow().isoformat(),
        uptime_seconds=round(time.time() - _module_start_time, 2),
        store_backend=config.store.backend,
        store_healthy=store_healthy,
        workers_running=workers_running,
    )
