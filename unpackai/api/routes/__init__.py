"""API routers."""

from unpackai.api.routes.health import router as health_router
from unpackai.api.routes.queue_stats import router as queue_stats_router
from unpackai.api.routes.refresh import router as refresh_router

__all__ = ["health_router", "queue_stats_router", "refresh_router"]
