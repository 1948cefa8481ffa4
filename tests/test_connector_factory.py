"""Tests for the connector factory and has_crm capability check."""

from __future__ import annotations

import pytest

from src.crmsync.config import Settings
from src.crmsync.connectors.errors import (
    CRMConfigurationError,
    CRMNotImplementedError,
    NoCRMConfiguredError,
    UnsupportedCRMError,
)
from src.crmsync.connectors.factory import create_crm_connector, has_crm
from src.crmsync.connectors.hubspot import HubSpotCRM
from src.crmsync.connectors.leadconnector import LeadConnectorCRM
from src.crmsync.core.cache import TenantCache
from src.crmsync.schemas.client import CRMConfig


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, LEADCONNECTOR_BASE_URL="https://lc.test", CRM_REQUEST_TIMEOUT=5.0)


@pytest.fixture
def tenant_cache(cache) -> TenantCache:
    return TenantCache(cache, "acme")


class TestCreateConnector:
    async def test_leadconnector(self, settings, tenant_cache):
        config = CRMConfig(type="leadconnector", api_token="tok", location_id="loc")
        connector = create_crm_connector(config, tenant_id="acme", cache=tenant_cache, settings=settings)
        async with connector:
            assert isinstance(connector, LeadConnectorCRM)
            assert str(connector._client.base_url).startswith("https://lc.test")
            assert connector._client.timeout.read == 5.0

    async def test_hubspot(self, settings, tenant_cache):
        config = CRMConfig(type="hubspot", api_token="tok")
        connector = create_crm_connector(config, tenant_id="acme", cache=tenant_cache, settings=settings)
        async with connector:
            assert isinstance(connector, HubSpotCRM)

    @pytest.mark.parametrize(
        "config",
        [
            CRMConfig(type="leadconnector", api_token="tok"),
            CRMConfig(type="leadconnector", location_id="loc"),
            CRMConfig(type="hubspot"),
        ],
    )
    def test_missing_credentials(self, settings, config):
        with pytest.raises(CRMConfigurationError) as exc_info:
            create_crm_connector(config, tenant_id="acme", settings=settings)
        assert exc_info.value.code == "crm_config_invalid"

    def test_spreadsheet_mode(self, settings):
        with pytest.raises(NoCRMConfiguredError) as exc_info:
            create_crm_connector(CRMConfig(type="spreadsheet"), tenant_id="acme", settings=settings)
        assert exc_info.value.code == "no_crm_configured"

    @pytest.mark.parametrize("crm_type,label", [("servicetitan", "ServiceTitan"), ("jobber", "Jobber")])
    def test_declared_but_not_implemented(self, settings, crm_type, label):
        with pytest.raises(CRMNotImplementedError) as exc_info:
            create_crm_connector(CRMConfig(type=crm_type), tenant_id="acme", settings=settings)
        assert exc_info.value.code == "crm_not_implemented"
        assert str(exc_info.value) == f"{label} connector not yet implemented"

    def test_unknown_type(self, settings):
        with pytest.raises(UnsupportedCRMError) as exc_info:
            create_crm_connector(CRMConfig(type="salesforce"), tenant_id="acme", settings=settings)
        assert exc_info.value.code == "unsupported_crm"
        assert "salesforce" in str(exc_info.value)

    def test_all_factory_errors_are_configuration_errors(self):
        for exc in (NoCRMConfiguredError(), CRMNotImplementedError("x"), UnsupportedCRMError("y")):
            assert isinstance(exc, CRMConfigurationError)


class TestHasCRM:
    @pytest.mark.parametrize(
        "crm_type,expected",
        [("leadconnector", True), ("hubspot", True), ("jobber", True), ("mystery", True), ("spreadsheet", False)],
    )
    def test_only_spreadsheet_has_no_crm(self, crm_type, expected):
        assert has_crm(CRMConfig(type=crm_type)) is expected
