"""
UnpackAI API.

HTTP boundary of the job queue: authenticates callers, submits refresh
jobs, serves status polling, queue statistics, health and Prometheus
metrics. The app owns a JobRuntime whose workers and maintenance run for
the lifetime of the server process.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import uvicorn
from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException

from unpackai import __version__
from unpackai.api.routes import health_router, queue_stats_router, refresh_router
from unpackai.core.auth import AuthService
from unpackai.core.config import Config
from unpackai.core.config_loaders import load_config
from unpackai.core.exceptions import StoreUnavailableError, ValidationError
from unpackai.core.jobs import JobRuntime, create_runtime
from unpackai.core.jobs.metrics import set_pending
from unpackai.core.logging import configure_logging, get_logger

logger = get_logger(__name__)


def _install_error_handlers(app: FastAPI) -> None:
    """Error bodies follow the web client's {success, error} shape."""

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable(
        request: Request, exc: StoreUnavailableError
    ) -> JSONResponse:
        logger.error("Job store unavailable", path=request.url.path, error=exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "success": False,
                "error": "Job store unavailable",
                "code": exc.error_code,
            },
        )

    @app.exception_handler(ValidationError)
    async def invalid_input(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "error": str(exc), "code": exc.error_code},
        )


def create_app(
    runtime: Optional[JobRuntime] = None, config: Optional[Config] = None
) -> FastAPI:
    """
    Build the API application.

    Args:
        runtime: Job runtime to serve. Built from config at startup if omitted.
        config: Configuration. Loaded from config.yaml and the environment
            if omitted.

    Returns:
        FastAPI app. The runtime is started and stopped by the app lifespan.
    """
    config = config or load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(level=config.logging.level, log_file=config.log_path)
        if app.state.runtime is None:
            app.state.runtime = create_runtime(config)
        app.state.runtime.start()
        logger.info(
            "API started",
            store=config.store.backend,
            workers=config.queue.max_workers,
        )
        try:
            yield
        finally:
            await app.state.runtime.stop()
            logger.info("API stopped")

    app = FastAPI(title="UnpackAI API", version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.runtime = runtime
    app.state.auth = AuthService.from_config(config.auth)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _install_error_handlers(app)

    app.include_router(refresh_router)
    app.include_router(queue_stats_router)
    app.include_router(health_router)

    @app.get("/metrics")
    async def get_metrics() -> Response:
        """Expose Prometheus metrics."""
        try:
            stats = await app.state.runtime.queue.stats()
            set_pending(stats.pending_count)
        except StoreUnavailableError as e:
            logger.warning("Could not refresh queue gauge", error=e)
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


def run_server(host: str = "0.0.0.0", port: int = 8000, reload: bool = False) -> None:
    """Run the API server."""
    if not host or len(host.strip()) == 0:
        raise ValueError("Invalid host: must be non-empty")
    if not (1 <= port <= 65535):
        raise ValueError(f"Invalid port: {port} (must be 1-65535)")
    uvicorn.run(
        "unpackai.api.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


if __name__ == "__main__":
    run_server()
