"""
FastAPI application factory for the DiamondView API service.

Creates the app with:
- Scoreboard REST routes
- Middleware stack
- Health check endpoint
- Lifespan management: builds and starts the aggregator on startup and
  stops it (cancelling in-flight polls) on shutdown
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable, Optional

import uvicorn
from fastapi import FastAPI

from scheduler.service import AggregatorService, build_service
from shared.config import get_settings
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server

from api.dependencies import init_dependencies
from api.middleware import setup_middleware
from api.routes.scores import router as scores_router

logger = get_logger(__name__)


@asynccontextmanager
async def _noop_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """No-op lifespan for testing without background polling."""
    yield


def _make_lifespan(
    service: Optional[AggregatorService],
) -> Callable[[FastAPI], AsyncGenerator[None, None]]:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        settings = get_settings()
        setup_logging("api")
        start_metrics_server()

        aggregator = service or build_service(settings)
        init_dependencies(aggregator)
        await aggregator.start()
        logger.info(
            "api_service_started",
            host=settings.api_host,
            port=settings.api_port,
            sources=[a.name for a in aggregator.adapters],
        )

        yield

        await aggregator.stop()
        init_dependencies(None)
        logger.info("api_service_stopped")

    return lifespan


def create_app(
    *,
    use_lifespan: bool = True,
    service: Optional[AggregatorService] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Set use_lifespan=False for testing without background polling; a
    ``service`` passed in that mode is attached as-is and never started.
    """
    settings = get_settings()

    app = FastAPI(
        title="DiamondView API",
        description="Live college baseball scoreboard",
        version="1.0.0",
        lifespan=_make_lifespan(service) if use_lifespan else _noop_lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    setup_middleware(app, settings)
    app.include_router(scores_router)

    if not use_lifespan:
        init_dependencies(service)

    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "api"}

    return app


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "api.app:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
