"""Prometheus metrics and Sentry integration.

Provides:
- MetricsMiddleware: ASGI middleware for HTTP request metrics
- track_crm_call(): Context manager for CRM backend call metrics
- record_cache_lookup(): Enrichment cache hit/miss counter
- init_sentry(): Initialize Sentry with client-aware before_send callback
- get_metrics_response(): FastAPI route handler body for /metrics
"""

from __future__ import annotations

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import sentry_sdk
from prometheus_client import REGISTRY, Counter, Histogram, generate_latest
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.crmsync.core.tenant import current_client_id

# ── HTTP Metrics ─────────────────────────────────────────────────────────────

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code", "client_id"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "client_id"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

# ── CRM Metrics ──────────────────────────────────────────────────────────────

crm_requests_total = Counter(
    "crm_requests_total",
    "Total CRM backend requests",
    ["crm_type", "operation", "status"],
)

crm_request_duration_seconds = Histogram(
    "crm_request_duration_seconds",
    "CRM backend request duration in seconds",
    ["crm_type", "operation"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

cache_lookups_total = Counter(
    "cache_lookups_total",
    "Enrichment cache lookups",
    ["result"],
)


# ── Metrics Middleware ───────────────────────────────────────────────────────


class MetricsMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that records Prometheus metrics for every HTTP request.

    Labels requests with the authenticated client id when the request
    reached a tenant-scoped route. Skips the /metrics endpoint itself.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        endpoint = request.url.path

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        # Set by the auth dependency on the request state (contextvars do not
        # propagate back out of the endpoint task).
        client_id = getattr(request.state, "client_id", None) or "unknown"

        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=str(response.status_code),
            client_id=client_id,
        ).inc()

        http_request_duration_seconds.labels(
            method=request.method,
            endpoint=endpoint,
            client_id=client_id,
        ).observe(duration)

        return response


# ── CRM Metrics Helpers ──────────────────────────────────────────────────────


@asynccontextmanager
async def track_crm_call(crm_type: str, operation: str) -> AsyncGenerator[None, None]:
    """Context manager that records count and duration of one CRM call.

    Usage:
        async with track_crm_call("leadconnector", "fetch_contact"):
            response = await client.get(...)
    """
    start_time = time.perf_counter()
    status = "success"

    try:
        yield
    except Exception:
        status = "error"
        raise
    finally:
        crm_requests_total.labels(crm_type=crm_type, operation=operation, status=status).inc()
        crm_request_duration_seconds.labels(crm_type=crm_type, operation=operation).observe(
            time.perf_counter() - start_time
        )


def record_cache_lookup(hit: bool) -> None:
    cache_lookups_total.labels(result="hit" if hit else "miss").inc()


# ── Sentry Integration ───────────────────────────────────────────────────────


def init_sentry(dsn: str, environment: str) -> None:
    """Initialize Sentry SDK with client-aware event tagging.

    Args:
        dsn: Sentry DSN string.
        environment: Deployment environment (development, staging, production).
    """
    traces_sample_rate = 0.1 if environment == "production" else 1.0

    def before_send(event: dict, hint: dict) -> dict:
        """Tag Sentry events with the client the request was made for."""
        client_id = current_client_id()
        if client_id:
            event.setdefault("tags", {})["client_id"] = client_id
        return event

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=traces_sample_rate,
        integrations=[
            StarletteIntegration(),
            FastApiIntegration(),
        ],
        before_send=before_send,
    )


# ── Metrics Endpoint ─────────────────────────────────────────────────────────


def get_metrics_response() -> Response:
    """Generate Prometheus exposition format response."""
    return Response(
        content=generate_latest(REGISTRY),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
