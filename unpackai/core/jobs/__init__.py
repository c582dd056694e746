"""
Background Job Queue for UnpackAI.

This module decouples the content-refresh pipeline from the HTTP request
cycle. Requests submit a job and return at once; a pool of workers runs the
pipeline and records the outcome; clients poll for status.

Architecture Context
--------------------

    ┌──────────────────┐     ┌─────────────────┐     ┌─────────────────┐
    │   CLI / API      │────→│   Job Queue     │────→│  Worker Pool    │
    │  (submit job)    │     │   (Redis)       │     │  (run pipeline) │
    └──────────────────┘     └─────────────────┘     └─────────────────┘
           ↑                                                  │
           │               Status polling                     │
           └──────────────────────────────────────────────────┘
"""

# Models
from unpackai.core.jobs.models import Job, JobKind, JobStatus, QueueStats, new_job_id

# Store
from unpackai.core.jobs.store import InMemoryJobStore, JobStore, RedisJobStore

# Queue
from unpackai.core.jobs.queue import JobQueueService

# Worker
from unpackai.core.jobs.worker import WorkerPool

# Maintenance
from unpackai.core.jobs.scheduler import MaintenanceReport, MaintenanceScheduler

# Factory
from unpackai.core.jobs.factory import (
    JobRuntime,
    create_job_queue,
    create_job_store,
    create_redis_client,
    create_runtime,
)

__all__ = [
    # Enums
    "JobStatus",
    "JobKind",
    # Models
    "Job",
    "QueueStats",
    "new_job_id",
    # Store
    "JobStore",
    "RedisJobStore",
    "InMemoryJobStore",
    # Queue
    "JobQueueService",
    # Worker
    "WorkerPool",
    # Maintenance
    "MaintenanceScheduler",
    "MaintenanceReport",
    # Factory
    "JobRuntime",
    "create_job_queue",
    "create_job_store",
    "create_redis_client",
    "create_runtime",
]
