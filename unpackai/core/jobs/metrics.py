"""
Job Queue Prometheus Metrics Definition.

Exposed by the API at /metrics.
"""

from prometheus_client import Counter, Gauge, Histogram

# --- Queue Metrics ---

QUEUE_PENDING = Gauge(
    "unpackai_queue_pending",
    "Number of job ids waiting in the pending list",
)

ACTIVE_JOBS = Gauge(
    "unpackai_jobs_active",
    "Number of jobs currently executing in this process",
)

# --- Outcome Metrics ---

JOBS_TOTAL = Counter(
    "unpackai_jobs_total",
    "Total number of jobs that reached a terminal state",
    ["outcome"],
)

JOB_DURATION = Histogram(
    "unpackai_job_duration_seconds",
    "Time from claim to terminal state in seconds",
    buckets=(1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0),
)


def track_job_outcome(outcome: str, duration_seconds: float) -> None:
    """Count a terminal outcome and record its duration."""
    JOBS_TOTAL.labels(outcome=outcome).inc()
    JOB_DURATION.observe(duration_seconds)


def set_pending(count: int) -> None:
    """Publish the current pending list length."""
    QUEUE_PENDING.set(count)
