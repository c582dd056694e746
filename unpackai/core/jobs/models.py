"""
Data models for background job processing.

Defines the job status enum, the Job record and its text mapping for the
job store, and the queue statistics snapshot.
"""

import json
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

DEFAULT_OVERLOAD_THRESHOLD = 100


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_job_id() -> str:
    """Generate a job id: millisecond timestamp plus a random suffix."""
    return f"job_{int(time.time() * 1000)}_{uuid.uuid4().hex[:12]}"


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored ISO timestamp; naive values are taken as UTC."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class JobStatus(Enum):
    """Job execution status.

    pending -> processing -> completed | failed. Terminal states never
    change again.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class JobKind(Enum):
    """Pipeline kinds a job config can be tagged with."""

    REFRESH = "refresh"


@dataclass
class Job:
    """
    Represents a background job.

    Attributes:
        id: Unique job identifier.
        owner_id: Requesting user, kept for auditing and statistics.
        config: Opaque JSON-serializable blob handed to the executor.
        status: Current job status.
        created_at: When the job was submitted.
        started_at: When a worker claimed the job.
        completed_at: When the job reached a terminal state.
        result: Executor output, present only when completed.
        error: Failure description, present only when failed.
        worker_id: Worker that processed the job.
    """

    id: str
    owner_id: str
    config: Any = field(default_factory=dict)
    status: JobStatus = JobStatus.PENDING
    created_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    result: Optional[Any] = None
    error: Optional[str] = None
    worker_id: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_mapping(self) -> Dict[str, str]:
        """Convert to the flat text mapping stored per job.

        Unset optional fields are omitted rather than stored as empty
        strings.
        """
        data = {
            "id": self.id,
            "owner_id": self.owner_id,
            "config": json.dumps(self.config),
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
        }
        if self.started_at is not None:
            data["started_at"] = self.started_at.isoformat()
        if self.completed_at is not None:
            data["completed_at"] = self.completed_at.isoformat()
        if self.result is not None:
            data["result"] = json.dumps(self.result)
        if self.error is not None:
            data["error"] = self.error
        if self.worker_id is not None:
            data["worker_id"] = self.worker_id
        return data

    @classmethod
    def from_mapping(cls, data: Dict[str, str]) -> "Job":
        """Create Job from a stored mapping."""
        created_at = parse_timestamp(data.get("created_at"))
        return cls(
            id=data["id"],
            owner_id=data.get("owner_id", ""),
            config=json.loads(data["config"]) if data.get("config") else {},
            status=JobStatus(data["status"]),
            created_at=created_at or utcnow(),
            started_at=parse_timestamp(data.get("started_at")),
            completed_at=parse_timestamp(data.get("completed_at")),
            result=json.loads(data["result"]) if data.get("result") else None,
            error=data.get("error"),
            worker_id=data.get("worker_id"),
        )


@dataclass(frozen=True)
class QueueStats:
    """Snapshot of queue depth and configured concurrency."""

    pending_count: int
    max_concurrency: int

    def is_overloaded(self, threshold: int = DEFAULT_OVERLOAD_THRESHOLD) -> bool:
        """A queue at or above the threshold is reported as overloaded."""
        return self.pending_count >= threshold

    def health(self, threshold: int = DEFAULT_OVERLOAD_THRESHOLD) -> str:
        return "overloaded" if self.is_overloaded(threshold) else "healthy"
