"""
Queue and worker pool configuration.

Defaults mirror the production deployment: ten concurrent workers, a five
second blocking pop, a five minute per-job deadline and a 24 hour
retention window for terminal jobs.
"""

from dataclasses import dataclass


@dataclass
class QueueConfig:
    """Job queue, worker pool and maintenance settings."""

    max_workers: int = 10
    pop_timeout_seconds: float = 5.0
    job_timeout_seconds: float = 300.0
    retention_hours: float = 24.0
    cleanup_interval_seconds: float = 3600.0
    stale_after_seconds: float = 900.0  # 0 disables the stale watchdog
    shutdown_grace_seconds: float = 30.0
