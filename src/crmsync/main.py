"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, CORS, Sentry,
JSON error handlers, a lifespan that runs the enrichment-cache sweeper, and
the v1 API router.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import Response

from src.crmsync.api.errors import register_exception_handlers
from src.crmsync.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.crmsync.api.v1.router import router as v1_router
from src.crmsync.config import get_settings
from src.crmsync.core.cache import get_cache
from src.crmsync.core.clients import get_client_loader
from src.crmsync.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: logging, Sentry and the cache sweeper on startup."""
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    cache = get_cache()
    cache.start_sweeper(settings.CACHE_SWEEP_INTERVAL_SECONDS)

    log.info(
        "app.started",
        environment=settings.ENVIRONMENT.value,
        clients=len(get_client_loader().list_clients()),
    )

    yield

    await cache.stop_sweeper()
    log.info("app.stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="CRM Sync API",
        version="0.1.0",
        description="Multi-tenant CRM invoice, appointment and payment sync",
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    # Middleware is added in reverse order (last added = outermost)

    # CORS middleware
    if settings.CORS_ALLOWED_ORIGINS == "*":
        origins = ["*"]
    else:
        origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    app.include_router(v1_router)

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
