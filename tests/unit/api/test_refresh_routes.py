"""
Tests for the refresh, queue statistics, health and metrics endpoints.

The app runs with an in-memory store and a stub executor; the lifespan
starts the worker pool exactly as in production.
"""

import time
from typing import Generator
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from conftest import StubExecutor
from unpackai.api.main import create_app, run_server
from unpackai.core.auth import AuthService
from unpackai.core.config import Config
from unpackai.core.exceptions import StoreUnavailableError
from unpackai.core.jobs import InMemoryJobStore, JobRuntime, create_runtime


@pytest.fixture
def api_config(memory_config: Config) -> Config:
    memory_config.queue.pop_timeout_seconds = 0.05
    memory_config.queue.max_workers = 2
    return memory_config


@pytest.fixture
def executor() -> StubExecutor:
    return StubExecutor(result={"articles": [{"title": "A"}]})


@pytest.fixture
def runtime(api_config: Config, executor: StubExecutor) -> JobRuntime:
    return create_runtime(api_config, executor=executor, store=InMemoryJobStore())


@pytest.fixture
def client(api_config: Config, runtime: JobRuntime) -> Generator[TestClient, None, None]:
    with TestClient(create_app(runtime=runtime, config=api_config)) as test_client:
        yield test_client


def auth_headers(config: Config, user_id: str = "user-1") -> dict:
    token = AuthService.from_config(config.auth).create_access_token(
        user_id, f"{user_id}@example.com"
    )
    return {"Authorization": f"Bearer {token}"}


def poll(client: TestClient, job_id: str, headers: dict, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    while True:
        body = client.get(
            "/api/refresh-async", params={"jobId": job_id}, headers=headers
        ).json()
        if body["job"]["status"] in ("completed", "failed"):
            return body["job"]
        if time.monotonic() > deadline:
            raise AssertionError(f"job {job_id} not terminal: {body}")
        time.sleep(0.02)


class TestAuthentication:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("post", "/api/refresh-async"),
            ("get", "/api/refresh-async?jobId=job_1"),
            ("get", "/api/queue-stats"),
        ],
    )
    def test_missing_token(self, client: TestClient, method: str, path: str) -> None:
        response = getattr(client, method)(path)

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Unauthorized"}

    def test_invalid_token(self, client: TestClient) -> None:
        response = client.get(
            "/api/queue-stats", headers={"Authorization": "Bearer not-a-jwt"}
        )

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid token"
        assert response.headers["WWW-Authenticate"] == "Bearer"


class TestQueueRefresh:
    """Tests for POST /api/refresh-async."""

    def test_queues_with_defaults(self, client: TestClient, api_config: Config) -> None:
        response = client.post("/api/refresh-async", headers=auth_headers(api_config))

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["status"] == "queued"
        assert body["message"] == "Refresh job queued successfully"
        assert body["estimatedTime"] == "30-60 seconds"
        assert body["jobId"].startswith("job_")
        assert body["metadata"]["userId"] == "user-1"
        assert body["metadata"]["config"]["maxResults"] == 15

    def test_uses_request_config(
        self, client: TestClient, api_config: Config, executor: StubExecutor
    ) -> None:
        headers = auth_headers(api_config)
        response = client.post(
            "/api/refresh-async",
            json={"config": {"maxResults": 5}},
            headers=headers,
        )

        job_id = response.json()["jobId"]
        poll(client, job_id, headers)
        assert executor.configs == [{"maxResults": 5}]

    def test_job_completes_and_is_polled(
        self, client: TestClient, api_config: Config
    ) -> None:
        headers = auth_headers(api_config)
        job_id = client.post("/api/refresh-async", headers=headers).json()["jobId"]

        job = poll(client, job_id, headers)

        assert job["id"] == job_id
        assert job["status"] == "completed"
        assert job["result"] == {"articles": [{"title": "A"}]}
        assert job["error"] is None
        assert job["createdAt"] <= job["startedAt"] <= job["completedAt"]

    def test_failed_job_reports_error(
        self, client: TestClient, api_config: Config, executor: StubExecutor
    ) -> None:
        executor.error = RuntimeError("provider down")
        headers = auth_headers(api_config)
        job_id = client.post("/api/refresh-async", headers=headers).json()["jobId"]

        job = poll(client, job_id, headers)

        assert job["status"] == "failed"
        assert job["error"] == "provider down"
        assert job["result"] is None

    def test_backpressure_rejects_when_full(
        self, api_config: Config, executor: StubExecutor
    ) -> None:
        api_config.api.max_pending = 1
        store = InMemoryJobStore()
        runtime = create_runtime(api_config, executor=executor, store=store)
        app = create_app(runtime=runtime, config=api_config)
        # No lifespan: workers never drain the queue.
        client = TestClient(app)
        headers = auth_headers(api_config)

        first = client.post("/api/refresh-async", headers=headers)
        second = client.post("/api/refresh-async", headers=headers)

        assert first.status_code == 200
        assert second.status_code == 503
        assert second.json() == {
            "success": False,
            "error": "Queue is full, try again later",
        }

    def test_store_outage_is_503(
        self, client: TestClient, api_config: Config, runtime: JobRuntime
    ) -> None:
        runtime.queue.store.create = AsyncMock(side_effect=StoreUnavailableError("down"))

        response = client.post("/api/refresh-async", headers=auth_headers(api_config))

        assert response.status_code == 503
        assert response.json()["error"] == "Job store unavailable"
        assert response.json()["code"] == "UA-STOR-001"


class TestRefreshStatus:
    """Tests for GET /api/refresh-async."""

    def test_job_id_required(self, client: TestClient, api_config: Config) -> None:
        response = client.get("/api/refresh-async", headers=auth_headers(api_config))

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Job ID required"}

    def test_unknown_job(self, client: TestClient, api_config: Config) -> None:
        response = client.get(
            "/api/refresh-async",
            params={"jobId": "nonexistent-id"},
            headers=auth_headers(api_config),
        )

        assert response.status_code == 404
        assert response.json()["error"] == "Job not found"

    def test_other_users_job_is_not_found(
        self, client: TestClient, api_config: Config
    ) -> None:
        job_id = client.post(
            "/api/refresh-async", headers=auth_headers(api_config, "owner")
        ).json()["jobId"]

        response = client.get(
            "/api/refresh-async",
            params={"jobId": job_id},
            headers=auth_headers(api_config, "intruder"),
        )

        assert response.status_code == 404


class TestQueueStats:
    """Tests for GET /api/queue-stats."""

    def test_stats_shape(self, client: TestClient, api_config: Config) -> None:
        response = client.get("/api/queue-stats", headers=auth_headers(api_config))

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        stats = body["stats"]
        assert stats["queueLength"] == 0
        assert stats["maxConcurrentJobs"] == 2
        assert stats["activeJobs"] == 0
        assert stats["health"] == "healthy"
        assert "timestamp" in stats

    def test_overloaded(self, api_config: Config, executor: StubExecutor) -> None:
        api_config.api.overload_threshold = 2
        runtime = create_runtime(api_config, executor=executor, store=InMemoryJobStore())
        client = TestClient(create_app(runtime=runtime, config=api_config))
        headers = auth_headers(api_config)
        for _ in range(2):
            client.post("/api/refresh-async", headers=headers)

        stats = client.get("/api/queue-stats", headers=headers).json()["stats"]

        assert stats["queueLength"] == 2
        assert stats["health"] == "overloaded"


class TestHealthAndMetrics:
    def test_health_with_running_workers(self, client: TestClient) -> None:
        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["store_backend"] == "memory"
        assert body["store_healthy"] is True
        assert body["workers_running"] is True

    def test_health_degraded_without_workers(
        self, api_config: Config, runtime: JobRuntime
    ) -> None:
        client = TestClient(create_app(runtime=runtime, config=api_config))
        assert client.get("/health").json()["status"] == "degraded"

    def test_health_unhealthy_when_store_down(
        self, api_config: Config, runtime: JobRuntime
    ) -> None:
        runtime.queue.store.ping = AsyncMock(return_value=False)
        client = TestClient(create_app(runtime=runtime, config=api_config))

        body = client.get("/health").json()

        assert body["status"] == "unhealthy"
        assert body["store_healthy"] is False

    def test_metrics_exposition(self, client: TestClient, api_config: Config) -> None:
        headers = auth_headers(api_config)
        job_id = client.post("/api/refresh-async", headers=headers).json()["jobId"]
        poll(client, job_id, headers)

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "unpackai_queue_pending" in response.text
        assert 'unpackai_jobs_total{outcome="completed"}' in response.text


class TestRunServer:
    def test_rejects_empty_host(self) -> None:
        with pytest.raises(ValueError, match="Invalid host"):
            run_server(host=" ")

    def test_rejects_bad_port(self) -> None:
        with pytest.raises(ValueError, match="Invalid port"):
            run_server(port=70000)
