"""Tests for the on-disk client configuration loader."""

from __future__ import annotations

import json

import pytest

from conftest import ACME_SECRET
from src.crmsync.core.clients import (
    ClientConfigLoader,
    is_valid_client_id,
    validate_client_config,
    write_client_config,
)
from src.crmsync.schemas.client import ClientConfig, CRMConfig


def _config(**overrides) -> ClientConfig:
    fields = {
        "client_id": "beta",
        "client_name": "Beta HVAC",
        "api_secret": "beta-secret",
        "crm": CRMConfig(type="hubspot", api_token="hs-token"),
        "spreadsheet_id": "sheet-beta",
        "timezone": "America/Denver",
    }
    fields.update(overrides)
    return ClientConfig(**fields)


# ── Validation ───────────────────────────────────────────────────────────────


class TestValidation:
    @pytest.mark.parametrize("client_id", ["acme", "Acme_2", "a-b-c", "x9"])
    def test_valid_ids(self, client_id):
        assert is_valid_client_id(client_id)

    @pytest.mark.parametrize("client_id", ["", "../etc", "a/b", "a b", "acme.json"])
    def test_invalid_ids(self, client_id):
        assert not is_valid_client_id(client_id)

    def test_complete_config_passes(self):
        assert validate_client_config(_config()) is None

    def test_missing_spreadsheet(self):
        assert validate_client_config(_config(spreadsheet_id="")) == "Missing spreadsheetId"

    def test_leadconnector_needs_token_and_location(self):
        no_token = _config(crm=CRMConfig(type="leadconnector", location_id="loc"))
        no_location = _config(crm=CRMConfig(type="leadconnector", api_token="tok"))
        assert "apiToken" in validate_client_config(no_token)
        assert "locationId" in validate_client_config(no_location)


# ── Loading ──────────────────────────────────────────────────────────────────


class TestLoad:
    def test_loads_camel_case_config(self, loader):
        config = loader.load("acme")

        assert config is not None
        assert config.client_name == "Acme Plumbing"
        assert config.api_secret == ACME_SECRET
        assert config.crm.location_id == "loc-1"
        assert config.team_user_ids == ["u1", "u2"]
        assert config.sheet_names.payment_types == "Payment Types"

    def test_unknown_client(self, loader):
        assert loader.load("nobody") is None

    def test_traversal_id_rejected(self, loader):
        assert loader.load("../acme") is None

    def test_invalid_json(self, loader, clients_dir):
        (clients_dir / "broken").mkdir()
        (clients_dir / "broken" / "config.json").write_text("{not json", encoding="utf-8")
        assert loader.load("broken") is None

    def test_incomplete_config(self, loader, clients_dir):
        (clients_dir / "partial").mkdir()
        body = {
            "clientId": "partial",
            "clientName": "Partial",
            "apiSecret": "s",
            "crm": {"type": "leadconnector", "apiToken": "tok"},
            "spreadsheetId": "sheet",
            "timezone": "UTC",
        }
        (clients_dir / "partial" / "config.json").write_text(json.dumps(body), encoding="utf-8")
        assert loader.load("partial") is None

    def test_cached_until_reload(self, loader, clients_dir):
        first = loader.load("acme")
        path = clients_dir / "acme" / "config.json"
        body = json.loads(path.read_text(encoding="utf-8"))
        body["clientName"] = "Acme Renamed"
        path.write_text(json.dumps(body), encoding="utf-8")

        assert loader.load("acme") is first
        assert loader.reload("acme").client_name == "Acme Renamed"

    def test_clear_cache(self, loader, clients_dir):
        first = loader.load("acme")
        loader.clear_cache()
        assert loader.load("acme") is not first

    def test_list_clients_skips_underscore_dirs(self, loader):
        assert loader.list_clients() == ["acme", "manual"]

    def test_list_clients_missing_dir(self, tmp_path):
        assert ClientConfigLoader(tmp_path / "absent").list_clients() == []


# ── Writing ──────────────────────────────────────────────────────────────────


class TestWriteClientConfig:
    def test_writes_loadable_camel_case_json(self, clients_dir, loader):
        path = write_client_config(clients_dir, _config())

        raw = json.loads(path.read_text(encoding="utf-8"))
        assert raw["clientId"] == "beta"
        assert raw["crm"] == {"type": "hubspot", "apiToken": "hs-token"}
        assert loader.load("beta").client_name == "Beta HVAC"

    def test_refuses_to_overwrite(self, clients_dir):
        write_client_config(clients_dir, _config())
        with pytest.raises(ValueError, match="already exists"):
            write_client_config(clients_dir, _config())
        write_client_config(clients_dir, _config(client_name="Beta 2"), overwrite=True)

    def test_rejects_bad_id(self, clients_dir):
        with pytest.raises(ValueError, match="Invalid client id"):
            write_client_config(clients_dir, _config(client_id="../evil"))

    def test_rejects_incomplete(self, clients_dir):
        with pytest.raises(ValueError, match="Missing timezone"):
            write_client_config(clients_dir, _config(timezone=""))
