"""File-system loader for tenant (client) configuration.

Each client lives in <clients_dir>/<clientId>/config.json. Directories whose
name starts with an underscore (e.g. _template) are not clients. Loaded
configs are cached in memory until reload() or clear_cache().

Invalid or missing configs load as None with a warning; callers report them
as "client not found" rather than leaking which check failed.
"""

from __future__ import annotations

import json
import re
from pathlib import Path

import structlog
from pydantic import ValidationError

from src.crmsync.schemas.client import ClientConfig, CRMType

logger = structlog.get_logger(__name__)

CLIENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def is_valid_client_id(client_id: str) -> bool:
    """Only letters, digits, hyphen and underscore: no path traversal possible."""
    return bool(client_id) and bool(CLIENT_ID_PATTERN.match(client_id))


def validate_client_config(config: ClientConfig) -> str | None:
    """Return a description of the first missing required field, or None."""
    required = (
        ("clientId", config.client_id),
        ("clientName", config.client_name),
        ("apiSecret", config.api_secret),
        ("crm.type", config.crm.type),
        ("spreadsheetId", config.spreadsheet_id),
        ("timezone", config.timezone),
    )
    for name, value in required:
        if not value:
            return f"Missing {name}"

    if config.crm.type == CRMType.LEADCONNECTOR.value:
        if not config.crm.api_token:
            return "Missing crm.apiToken for LeadConnector"
        if not config.crm.location_id:
            return "Missing crm.locationId for LeadConnector"
    return None


class ClientConfigLoader:
    """Loads and caches ClientConfig objects from a clients directory."""

    def __init__(self, clients_dir: str | Path) -> None:
        self._clients_dir = Path(clients_dir)
        self._cache: dict[str, ClientConfig] = {}

    @property
    def clients_dir(self) -> Path:
        return self._clients_dir

    def load(self, client_id: str) -> ClientConfig | None:
        if not is_valid_client_id(client_id):
            logger.warning("clients.invalid_client_id", client_id=client_id)
            return None

        cached = self._cache.get(client_id)
        if cached is not None:
            return cached

        config_path = self._clients_dir / client_id / "config.json"
        if not config_path.is_file():
            logger.warning("clients.config_not_found", client_id=client_id)
            return None

        try:
            raw = json.loads(config_path.read_text(encoding="utf-8"))
            config = ClientConfig.model_validate(raw)
        except (OSError, ValueError, ValidationError) as exc:
            logger.warning("clients.config_unreadable", client_id=client_id, error=str(exc))
            return None

        problem = validate_client_config(config)
        if problem:
            logger.warning("clients.config_invalid", client_id=client_id, problem=problem)
            return None

        self._cache[client_id] = config
        return config

    def reload(self, client_id: str) -> ClientConfig | None:
        """Drop the cached copy of one client and read it from disk again."""
        if not is_valid_client_id(client_id):
            return None
        self._cache.pop(client_id, None)
        return self.load(client_id)

    def clear_cache(self) -> None:
        self._cache.clear()

    def list_clients(self) -> list[str]:
        """Client directory names, skipping ones that start with an underscore."""
        if not self._clients_dir.is_dir():
            return []
        return sorted(
            entry.name
            for entry in self._clients_dir.iterdir()
            if entry.is_dir() and not entry.name.startswith("_")
        )


_loader: ClientConfigLoader | None = None


def get_client_loader() -> ClientConfigLoader:
    """Get or create the process-wide loader rooted at settings.CLIENTS_DIR."""
    global _loader
    if _loader is None:
        from src.crmsync.config import get_settings

        _loader = ClientConfigLoader(get_settings().CLIENTS_DIR)
    return _loader


def write_client_config(clients_dir: str | Path, config: ClientConfig, *, overwrite: bool = False) -> Path:
    """Write ``config`` to <clients_dir>/<clientId>/config.json as camelCase JSON.

    Raises:
        ValueError: Invalid client id, incomplete config, or the file exists
            and ``overwrite`` is False.
    """
    if not is_valid_client_id(config.client_id):
        raise ValueError(f"Invalid client id: {config.client_id!r}")
    problem = validate_client_config(config)
    if problem:
        raise ValueError(problem)

    config_path = Path(clients_dir) / config.client_id / "config.json"
    if config_path.exists() and not overwrite:
        raise ValueError(f"{config_path} already exists")

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(
        json.dumps(config.model_dump(by_alias=True, exclude_none=True), indent=2) + "\n",
        encoding="utf-8",
    )
    logger.info("clients.config_written", client_id=config.client_id, path=str(config_path))
    return config_path
