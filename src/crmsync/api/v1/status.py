"""GET|POST /api/client-status -- configuration and CRM reachability for one client."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends

from src.crmsync.api.deps import get_cache_for_client, get_client
from src.crmsync.connectors.errors import CRMConfigurationError
from src.crmsync.connectors.factory import create_crm_connector, has_crm
from src.crmsync.core.cache import TenantCache
from src.crmsync.core.dates import utc_now_iso
from src.crmsync.schemas.client import ClientConfig

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["status"])


async def _crm_healthy(client: ClientConfig, cache: TenantCache) -> bool | None:
    """Run the connector health check; None when there is no connector to ask."""
    if not has_crm(client.crm):
        return None
    try:
        connector = create_crm_connector(client.crm, tenant_id=client.client_id, cache=cache)
    except CRMConfigurationError as exc:
        logger.info("api.status_no_connector", client_id=client.client_id, code=exc.code)
        return None
    async with connector:
        return await connector.health_check()


@router.api_route("/client-status", methods=["GET", "POST"])
async def client_status(
    client: ClientConfig = Depends(get_client),
    cache: TenantCache = Depends(get_cache_for_client),
):
    crm_enabled = has_crm(client.crm)
    return {
        "ok": True,
        **client.public_summary(),
        "hasCRM": crm_enabled,
        "features": {
            "crmSync": crm_enabled,
            "manualUpload": True,
            "sheetsOutput": bool(client.spreadsheet_id),
        },
        "crmHealthy": await _crm_healthy(client, cache),
        "timestamp": utc_now_iso(),
    }
