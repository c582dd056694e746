"""
Pipeline executors.

The worker pool calls ``await executor.execute(config, job_id=...)`` once
per job. An executor returns a JSON-serializable result or raises; the
worker records either outcome on the job.

    WorkerPool ──→ KindDispatchExecutor ──kind="refresh"──→ WebhookPipelineExecutor
                                                              │ POST {jobId, config, timestamp}
                                                              ↓
                                                        N8n workflow
"""

from typing import Any, Dict, Mapping, Optional, Protocol

import httpx
from pydantic import ValidationError as PydanticValidationError

from unpackai.core.config import Config, ExecutorConfig
from unpackai.core.exceptions import ConfigurationError, JobExecutionError
from unpackai.core.jobs.models import JobKind, utcnow
from unpackai.core.logging import get_logger
from unpackai.pipeline.config import RefreshConfig

logger = get_logger(__name__)

DEFAULT_REQUEST_TIMEOUT = 120.0


class PipelineExecutor(Protocol):
    """Runs the content workflow for one job."""

    async def execute(self, config: Any, *, job_id: str) -> Any:
        """Execute the workflow. Raises on failure."""
        ...


class WebhookPipelineExecutor:
    """
    Triggers the refresh workflow through an N8n webhook.

    The workflow runs synchronously from the caller's point of view: the
    webhook responds when the workflow has finished, with the result as
    the JSON body.
    """

    def __init__(
        self,
        webhook_url: str,
        api_key: str = "",
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Args:
            webhook_url: Workflow webhook URL. Empty means not configured.
            api_key: Optional bearer token sent to the webhook.
            timeout: HTTP timeout in seconds.
            client: HTTP client to use; one is created if omitted.
        """
        self.webhook_url = webhook_url
        self.api_key = api_key
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_config(cls, config: ExecutorConfig) -> "WebhookPipelineExecutor":
        return cls(
            webhook_url=config.webhook_url,
            api_key=config.api_key,
            timeout=config.request_timeout_seconds,
        )

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def execute(self, config: Any, *, job_id: str) -> Any:
        if not self.webhook_url:
            raise ConfigurationError("N8n webhook URL not configured")

        try:
            refresh = RefreshConfig.model_validate(config or {})
        except PydanticValidationError as e:
            raise JobExecutionError(
                f"Invalid refresh config: {e.error_count()} validation error(s)"
            ) from e

        payload = {
            "jobId": job_id,
            "config": refresh.to_payload(),
            "timestamp": utcnow().isoformat(),
        }
        logger.debug("Triggering workflow", job_id=job_id)

        try:
            response = await self._client.post(
                self.webhook_url, json=payload, headers=self._headers()
            )
        except httpx.TimeoutException as e:
            raise JobExecutionError(
                f"N8n workflow timed out after {self.timeout:g}s"
            ) from e
        except httpx.HTTPError as e:
            raise JobExecutionError(f"N8n workflow request failed: {e}") from e

        if response.is_error:
            reason = response.reason_phrase or str(response.status_code)
            raise JobExecutionError(f"N8n workflow failed: {reason}")

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise JobExecutionError("N8n workflow returned invalid JSON") from e

    async def close(self) -> None:
        await self._client.aclose()


class KindDispatchExecutor:
    """
    Routes a job to the executor registered for its config's kind tag.

    Configs without a kind tag are treated as the default kind.
    """

    def __init__(
        self,
        handlers: Mapping[str, PipelineExecutor],
        default_kind: str = JobKind.REFRESH.value,
    ) -> None:
        self.handlers = dict(handlers)
        self.default_kind = default_kind

    def _kind_of(self, config: Any) -> str:
        if isinstance(config, dict):
            return str(config.get("kind") or self.default_kind)
        return self.default_kind

    async def execute(self, config: Any, *, job_id: str) -> Any:
        kind = self._kind_of(config)
        handler = self.handlers.get(kind)
        if handler is None:
            raise JobExecutionError(f"No handler for job kind: {kind}")
        return await handler.execute(config, job_id=job_id)

    async def close(self) -> None:
        for handler in self.handlers.values():
            close = getattr(handler, "close", None)
            if close is not None:
                await close()


def create_executor(config: Config) -> KindDispatchExecutor:
    """Build the executor used by the worker pool."""
    return KindDispatchExecutor(
        {JobKind.REFRESH.value: WebhookPipelineExecutor.from_config(config.executor)}
    )
