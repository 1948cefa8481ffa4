"""Connector factory -- picks the CRM implementation from a tenant's declared type.

Every failure is a CRMConfigurationError subclass with a stable ``code`` so
the API layer can report it without string matching.
"""

from __future__ import annotations

import structlog

from src.crmsync.config import Settings, get_settings
from src.crmsync.connectors.base import CRMConnector
from src.crmsync.connectors.errors import (
    CRMConfigurationError,
    CRMNotImplementedError,
    NoCRMConfiguredError,
    UnsupportedCRMError,
)
from src.crmsync.connectors.hubspot import HubSpotCRM
from src.crmsync.connectors.leadconnector import LeadConnectorCRM
from src.crmsync.core.cache import TenantCache, get_tenant_cache
from src.crmsync.schemas.client import CRMConfig, CRMType

logger = structlog.get_logger(__name__)

_NOT_IMPLEMENTED = {CRMType.SERVICETITAN.value: "ServiceTitan", CRMType.JOBBER.value: "Jobber"}


def has_crm(config: CRMConfig) -> bool:
    """True unless the tenant runs in spreadsheet-only (manual upload) mode."""
    return config.type != CRMType.SPREADSHEET.value


def create_crm_connector(
    config: CRMConfig,
    *,
    tenant_id: str,
    cache: TenantCache | None = None,
    settings: Settings | None = None,
) -> CRMConnector:
    """Build the connector for ``config.type``.

    Args:
        config: The tenant's CRM block.
        tenant_id: Namespace for the connector's enrichment cache entries.
        cache: Tenant cache override; defaults to the process-wide cache.
        settings: Settings override; defaults to get_settings().

    Raises:
        CRMConfigurationError: Required credentials are missing.
        NoCRMConfiguredError: Spreadsheet-only tenant.
        CRMNotImplementedError: Declared type has no connector yet.
        UnsupportedCRMError: Unknown type.
    """
    settings = settings or get_settings()
    cache = cache or get_tenant_cache(tenant_id)

    if config.type == CRMType.LEADCONNECTOR.value:
        if not config.api_token or not config.location_id:
            raise CRMConfigurationError("LeadConnector requires apiToken and locationId")
        connector: CRMConnector = LeadConnectorCRM(
            config.api_token,
            config.location_id,
            cache=cache,
            api_version=config.api_version or settings.LEADCONNECTOR_API_VERSION,
            base_url=settings.LEADCONNECTOR_BASE_URL,
            timeout=settings.CRM_REQUEST_TIMEOUT,
            page_size=settings.CRM_PAGE_SIZE,
            page_delay_seconds=settings.CRM_PAGE_DELAY_SECONDS,
            transaction_page_delay_seconds=settings.TRANSACTION_PAGE_DELAY_SECONDS,
            user_delay_seconds=settings.APPOINTMENT_USER_DELAY_SECONDS,
            contact_ttl_seconds=settings.CONTACT_CACHE_TTL_SECONDS,
        )
    elif config.type == CRMType.HUBSPOT.value:
        if not config.api_token:
            raise CRMConfigurationError("HubSpot requires apiToken")
        connector = HubSpotCRM(
            config.api_token,
            cache=cache,
            base_url=settings.HUBSPOT_BASE_URL,
            timeout=settings.CRM_REQUEST_TIMEOUT,
            page_size=settings.CRM_PAGE_SIZE,
            page_delay_seconds=settings.CRM_PAGE_DELAY_SECONDS,
            contact_ttl_seconds=settings.CONTACT_CACHE_TTL_SECONDS,
        )
    elif config.type == CRMType.SPREADSHEET.value:
        raise NoCRMConfiguredError()
    elif config.type in _NOT_IMPLEMENTED:
        raise CRMNotImplementedError(_NOT_IMPLEMENTED[config.type])
    else:
        raise UnsupportedCRMError(config.type)

    logger.debug("crm.connector_created", crm_type=config.type, tenant_id=tenant_id)
    return connector
