"""
FastAPI application factory for the aggregator API service.

Creates the app with:
- REST routes (matches)
- Middleware stack
- Health and status endpoints
- Lifespan management: aggregation service, polling loop, metrics server
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI

from shared.config import get_settings
from shared.models.enums import Sport
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server

from aggregator.service import build_aggregation_service
from api.dependencies import get_poller, init_dependencies
from api.middleware import setup_middleware
from api.routes.matches import router as matches_router
from scheduler.service import PollingService

logger = get_logger(__name__)


@asynccontextmanager
async def _noop_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """No-op lifespan for tests that wire dependencies themselves."""
    yield


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Starts the adapters and cache store, runs the polling loop in the
    background and tears both down on shutdown.
    """
    settings = get_settings()
    setup_logging("api")
    start_metrics_server()

    service = build_aggregation_service(settings)
    await service.start()
    poller = PollingService(service, settings=settings)
    init_dependencies(service, poller)

    poll_task = asyncio.create_task(poller.run())
    logger.info(
        "api_service_started",
        host=settings.api_host,
        port=settings.api_port,
        cache_backend=settings.cache_backend.value,
    )

    yield

    poller.request_shutdown()
    poll_task.cancel()
    try:
        await poll_task
    except asyncio.CancelledError:
        pass
    await service.close()
    logger.info("api_service_stopped")


def create_app(*, use_lifespan: bool = True) -> FastAPI:
    """Create and configure the FastAPI application. Set use_lifespan=False for tests."""
    app = FastAPI(
        title="Multi-Sport Aggregator API",
        description="Live and recent results across cricket, basketball, football and hockey",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else _noop_lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    setup_middleware(app)
    app.include_router(matches_router)

    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "api"}

    @app.get("/v1/status", tags=["system"])
    async def system_status() -> dict[str, Any]:
        """Last applied cycle, per-sport counts and which sports were served from cache."""
        board = get_poller().board
        latest = board.latest
        if latest is None:
            return {"status": "warming_up", "appliedCycle": board.applied_cycle}
        return {
            "status": "degraded" if latest.fallbacks else "ok",
            "appliedCycle": board.applied_cycle,
            "generatedAt": latest.generated_at.isoformat(),
            "matches": {sport.value: len(latest.for_sport(sport)) for sport in Sport},
            "fallbacks": [sport.value for sport in latest.fallbacks],
        }

    return app


# For running with uvicorn directly
app = create_app()
