"""FastAPI dependencies for client authentication and tenant-scoped resources.

Authentication is a per-client shared secret: the caller sends
``Authorization: Bearer <apiSecret>`` and names the client via the JSON body
``clientId``, the ``clientId`` query parameter, or the ``X-Client-ID``
header (checked in that order). The secret must match that client's
config, so one client's secret never unlocks another client.
"""

from __future__ import annotations

import secrets
from collections.abc import AsyncGenerator

from fastapi import Depends, Request

from src.crmsync.api.errors import ApiError
from src.crmsync.connectors.base import CRMConnector
from src.crmsync.connectors.factory import create_crm_connector, has_crm
from src.crmsync.core.cache import TenantCache, get_tenant_cache
from src.crmsync.core.clients import ClientConfigLoader, get_client_loader
from src.crmsync.core.tenant import ClientContext, set_client_context
from src.crmsync.schemas.client import ClientConfig
from src.crmsync.services.sheets import SheetsWriter, get_sheets_writer


async def _client_id_from_request(request: Request) -> str | None:
    if request.method in ("POST", "PUT", "PATCH"):
        try:
            body = await request.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("clientId"), str) and body["clientId"]:
            return body["clientId"]
    return request.query_params.get("clientId") or request.headers.get("X-Client-ID") or None


async def get_client(
    request: Request,
    loader: ClientConfigLoader = Depends(get_client_loader),
) -> ClientConfig:
    """Authenticate the request and return the caller's client config.

    Raises:
        ApiError(401): Missing/malformed Authorization header or wrong secret.
        ApiError(400): No client id anywhere in the request.
        ApiError(404): No valid config for that client id.
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise ApiError(401, "unauthorized", "Missing or invalid Authorization header")
    provided_secret = auth_header[7:].strip()
    if not provided_secret:
        raise ApiError(401, "unauthorized", "Empty API secret")

    client_id = await _client_id_from_request(request)
    if not client_id:
        raise ApiError(
            400,
            "missing_client_id",
            "clientId is required (in body, query, or X-Client-ID header)",
        )

    config = loader.load(client_id)
    if config is None:
        raise ApiError(404, "client_not_found", f"No configuration found for client: {client_id}")

    if not secrets.compare_digest(provided_secret.encode(), config.api_secret.encode()):
        raise ApiError(401, "unauthorized", "Invalid API secret for this client")

    request.state.client_id = config.client_id
    set_client_context(
        ClientContext(
            client_id=config.client_id,
            client_name=config.client_name,
            crm_type=config.crm.type,
        )
    )
    return config


async def get_cache_for_client(client: ClientConfig = Depends(get_client)) -> TenantCache:
    return get_tenant_cache(client.client_id)


async def get_crm(
    client: ClientConfig = Depends(get_client),
    cache: TenantCache = Depends(get_cache_for_client),
) -> AsyncGenerator[CRMConnector, None]:
    """Connector for the caller's CRM, closed when the request finishes.

    Spreadsheet-only tenants are turned away with 400 no_crm_configured
    before any connector is built. Missing credentials and unsupported CRM
    types raise CRMConfigurationError, which the error handlers turn into a
    400 with the error's code.
    """
    if not has_crm(client.crm):
        raise ApiError(
            400,
            "no_crm_configured",
            "Spreadsheet-only mode: use manual data entry endpoints instead of CRM sync",
        )
    connector = create_crm_connector(client.crm, tenant_id=client.client_id, cache=cache)
    try:
        yield connector
    finally:
        await connector.aclose()


async def get_sheets() -> SheetsWriter | None:
    return get_sheets_writer()
