"""V1 API router -- aggregates all endpoint routers."""

from __future__ import annotations

from fastapi import APIRouter

from src.crmsync.api.v1 import appointments, health, invoices, payments, status, upload

router = APIRouter()

router.include_router(health.router)
router.include_router(invoices.router)
router.include_router(appointments.router)
router.include_router(payments.router)
router.include_router(status.router)
router.include_router(upload.router)
