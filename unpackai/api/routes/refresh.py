"""Async Refresh Router.

Queues content-refresh jobs for background processing and reports their
status to polling clients.

Endpoints:
- POST /api/refresh-async - Queue a refresh job for the caller
- GET /api/refresh-async?jobId= - Status of one of the caller's jobs
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from unpackai.api.deps import get_config, get_current_user, get_runtime
from unpackai.core.auth import CallerIdentity
from unpackai.core.config import Config
from unpackai.core.jobs import Job, JobRuntime
from unpackai.core.jobs.models import utcnow
from unpackai.core.logging import get_logger
from unpackai.pipeline.config import DEFAULT_REFRESH_CONFIG

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["refresh"])

ESTIMATED_TIME = "30-60 seconds"


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================


class RefreshRequest(BaseModel):
    """Refresh request body. The config is passed to the pipeline as-is."""

    config: Optional[Dict[str, Any]] = Field(
        None, description="Refresh configuration; defaults are used when omitted"
    )


class RefreshMetadata(BaseModel):
    userId: str
    timestamp: str
    config: Dict[str, Any]


class RefreshQueuedResponse(BaseModel):
    success: bool = True
    message: str = "Refresh job queued successfully"
    jobId: str
    status: str = "queued"
    estimatedTime: str = ESTIMATED_TIME
    metadata: RefreshMetadata


class JobView(BaseModel):
    """Job record as seen by the polling client."""

    id: str
    status: str
    createdAt: str
    startedAt: Optional[str] = None
    completedAt: Optional[str] = None
    result: Optional[Any] = None
    error: Optional[str] = None

    @classmethod
    def from_job(cls, job: Job) -> JobView:
        return cls(
            id=job.id,
            status=job.status.value,
            createdAt=job.created_at.isoformat(),
            startedAt=job.started_at.isoformat() if job.started_at else None,
            completedAt=job.completed_at.isoformat() if job.completed_at else None,
            result=job.result,
            error=job.error,
        )


class JobStatusResponse(BaseModel):
    success: bool = True
    job: JobView


# =============================================================================
# ENDPOINT HANDLERS
# =============================================================================


@router.post("/refresh-async", response_model=RefreshQueuedResponse)
async def queue_refresh(
    body: Optional[RefreshRequest] = None,
    caller: CallerIdentity = Depends(get_current_user),
    runtime: JobRuntime = Depends(get_runtime),
    config: Config = Depends(get_config),
) -> RefreshQueuedResponse:
    """Queue a refresh job. Returns immediately with the job id."""
    refresh_config = (body.config if body else None) or dict(
        DEFAULT_REFRESH_CONFIG
    )

    if config.api.max_pending > 0:
        stats = await runtime.queue.stats()
        if stats.pending_count >= config.api.max_pending:
            logger.warning(
                "Rejecting refresh, queue full", pending=stats.pending_count
            )
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Queue is full, try again later",
            )

    job_id = await runtime.queue.submit(caller.user_id, refresh_config)
    logger.info("Queued refresh workflow", job_id=job_id, email=caller.email)

    return RefreshQueuedResponse(
        jobId=job_id,
        metadata=RefreshMetadata(
            userId=caller.user_id,
            timestamp=utcnow().isoformat(),
            config=refresh_config,
        ),
    )


@router.get("/refresh-async", response_model=JobStatusResponse)
async def get_refresh_status(
    jobId: Optional[str] = None,
    caller: CallerIdentity = Depends(get_current_user),
    runtime: JobRuntime = Depends(get_runtime),
) -> JobStatusResponse:
    """Status of a refresh job owned by the caller."""
    if not jobId:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Job ID required"
        )

    job = await runtime.queue.get_status(jobId)
    # Other users' jobs are reported as missing rather than forbidden.
    if job is None or job.owner_id != caller.user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")

    return JobStatusResponse(job=JobView.from_job(job))
