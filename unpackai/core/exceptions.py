"""
Errors raised by UnpackAI.

Everything the queue, the workers and the executors raise derives from
UnpackAIError. Besides a message, each class declares three attributes the
CLI and the API use to explain the failure:

    error_code       stable identifier such as "UA-STOR-001"
    why_it_happened  the likely cause in one sentence
    how_to_fix       steps an operator can take

Instances may override any of the three through keyword arguments.

    UnpackAIError
        StorageError
            StoreUnavailableError
        JobError
            JobNotFoundError
            JobExecutionError
                ExecutionTimeoutError
        ValidationError
            ConfigValidationError
        ConfigurationError

Only StoreUnavailableError reaches callers of submit() and get_status().
A failing job is recorded as failed and surfaces through polling instead.
"""

import re
from typing import List, Optional, Pattern, Tuple

_SECRET_PATTERNS: List[Tuple[Pattern[str], str]] = [
    (re.compile(r"(sk-|pk-|api_key[=:]\s*)[\w-]{20,}"), r"\1<api-key>"),
    (
        re.compile(r"(N8N_API_KEY|JWT_SECRET|REDIS_PASSWORD|API_KEY)[=:]\s*\S+"),
        r"\1=<hidden>",
    ),
    (re.compile(r"Bearer\s+[\w.-]+"), "Bearer <token>"),
    (re.compile(r"://[^:/@\s]+:[^@\s]+@"), "://<user>:<pass>@"),
    (re.compile(r"[0-9a-fA-F]{40,}"), "<hash>"),
]


def sanitize_message(message: str) -> str:
    """Mask API keys, bearer tokens, URL credentials and long hex digests."""
    for pattern, replacement in _SECRET_PATTERNS:
        message = pattern.sub(replacement, message or "")
    return message


def get_root_cause(exc: BaseException) -> BaseException:
    """Walk __cause__ / __context__ links to the first exception in the chain."""
    visited = {id(exc)}
    while True:
        nxt = exc.__cause__ or exc.__context__
        if nxt is None or id(nxt) in visited:
            return exc
        visited.add(id(nxt))
        exc = nxt


class UnpackAIError(Exception):
    """Root of the UnpackAI error hierarchy.

    The message is passed through sanitize_message() so credentials from
    connection strings or provider responses never reach logs or clients.
    """

    error_code: str = "UA-ERR-000"
    why_it_happened: str = "Something went wrong inside UnpackAI"
    how_to_fix: List[str] = ["Re-run with --verbose and read the traceback"]

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        why_it_happened: Optional[str] = None,
        how_to_fix: Optional[List[str]] = None,
    ) -> None:
        super().__init__(sanitize_message(message))
        overrides = {
            "error_code": error_code,
            "why_it_happened": why_it_happened,
            "how_to_fix": how_to_fix,
        }
        for attr, value in overrides.items():
            if value is not None:
                setattr(self, attr, value)

    @property
    def user_message(self) -> str:
        return str(self)

    def get_root_cause(self) -> BaseException:
        return get_root_cause(self)


# ============================================================================
# Storage Exceptions
# ============================================================================


class StorageError(UnpackAIError):
    """Raised when a job store operation fails."""

    error_code = "UA-STOR-000"
    why_it_happened = "A job store operation failed"
    how_to_fix = ["Check the job store logs for details"]


class StoreUnavailableError(StorageError):
    """
    Raised when the durable job store cannot be reached.

    This is an infrastructure failure, distinct from a missing job or a
    failed job. The HTTP boundary maps it to 503.
    """

    error_code = "UA-STOR-001"
    why_it_happened = (
        "The job store (Redis) is unreachable or rejected the command. "
        "The server may be down, the network may be partitioned, or the "
        "credentials may be wrong"
    )
    how_to_fix = [
        "Check that Redis is running: redis-cli -h <host> ping",
        "Verify REDIS_HOST, REDIS_PORT and REDIS_PASSWORD",
        "Use store.backend: memory for local development without Redis",
    ]


# ============================================================================
# Job Exceptions
# ============================================================================


class JobError(UnpackAIError):
    """Base exception for job-level errors."""

    error_code = "UA-JOB-000"
    why_it_happened = "A background job could not be processed"
    how_to_fix = ["Inspect the job record for the error message"]


class JobNotFoundError(JobError):
    """
    Raised when a job id has no record in the store.

    The id was never submitted or has already been removed by cleanup.
    """

    error_code = "UA-JOB-001"
    why_it_happened = (
        "No job with this id exists. It was never submitted or it was "
        "deleted by the retention cleanup"
    )
    how_to_fix = [
        "Check the job id returned by submit",
        "Terminal jobs are deleted after the retention window (24h default)",
    ]

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id


class JobExecutionError(JobError):
    """Raised by a pipeline executor when the workflow fails."""

    error_code = "UA-JOB-002"
    why_it_happened = "The content pipeline reported a failure"
    how_to_fix = [
        "Check the workflow service (N8n) logs",
        "Submit a new job to retry",
    ]


class ExecutionTimeoutError(JobExecutionError):
    """Raised when a pipeline call exceeds its deadline."""

    error_code = "UA-JOB-003"
    why_it_happened = (
        "The pipeline did not finish within the per-job deadline. An "
        "external search or language-model provider may be slow or hung"
    )
    how_to_fix = [
        "Increase queue.job_timeout_seconds if jobs are legitimately slow",
        "Check provider status pages for outages",
    ]

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(
            f"Pipeline execution timed out after {timeout_seconds:g}s"
        )
        self.timeout_seconds = timeout_seconds


# ============================================================================
# Validation and Configuration Exceptions
# ============================================================================


class ValidationError(UnpackAIError):
    """Raised when input data fails validation."""

    error_code = "UA-VAL-000"
    why_it_happened = "The provided data does not match the expected format"
    how_to_fix = ["Check the input against the documented schema"]


class ConfigValidationError(ValidationError):
    """Raised when a configuration value is invalid."""

    error_code = "UA-VAL-001"
    why_it_happened = "A configuration value is out of range or malformed"
    how_to_fix = [
        "Check config.yaml against the documented defaults",
        "Check environment overrides (UNPACKAI_*, REDIS_*)",
    ]

    def __init__(self, field: str, value: object, reason: str) -> None:
        super().__init__(f"Invalid config {field}={value!r}: {reason}")
        self.field = field
        self.value = value


class ConfigurationError(UnpackAIError):
    """Raised when a required collaborator is not configured."""

    error_code = "UA-CFG-001"
    why_it_happened = "A required setting for an external service is missing"
    how_to_fix = [
        "Set N8N_WEBHOOK_URL (and N8N_API_KEY if required)",
        "Or set executor.webhook_url in config.yaml",
    ]
