"""Liveness check. Public: no client authentication, no CRM calls."""

from __future__ import annotations

from fastapi import APIRouter

from src.crmsync.config import get_settings
from src.crmsync.core.dates import utc_now_iso

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    settings = get_settings()
    return {
        "ok": True,
        "environment": settings.ENVIRONMENT.value,
        "timestamp": utc_now_iso(),
    }
