"""Application configuration via Pydantic BaseSettings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    development = "development"
    staging = "staging"
    production = "production"
    test = "test"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ALLOWED_ORIGINS: str = "*"

    # Tenant (client) configuration: one directory per client holding config.json
    CLIENTS_DIR: str = "clients"
    DEFAULT_TIMEZONE: str = "America/New_York"

    # Enrichment cache
    CACHE_SWEEP_INTERVAL_SECONDS: int = 300
    CONTACT_CACHE_TTL_SECONDS: int = 21600  # 6 hours

    # CRM wire client and pacing
    CRM_REQUEST_TIMEOUT: float = 30.0
    CRM_PAGE_SIZE: int = 100
    CRM_PAGE_DELAY_SECONDS: float = 0.25
    TRANSACTION_PAGE_DELAY_SECONDS: float = 0.15
    APPOINTMENT_USER_DELAY_SECONDS: float = 0.15
    OWNER_LOOKUP_BATCH_SIZE: int = 25
    OWNER_LOOKUP_PAUSE_SECONDS: float = 0.25

    # CRM backends
    LEADCONNECTOR_BASE_URL: str = "https://services.leadconnectorhq.com"
    LEADCONNECTOR_API_VERSION: str = "2021-07-28"
    HUBSPOT_BASE_URL: str = "https://api.hubapi.com"

    # Google Sheets output
    GOOGLE_SERVICE_ACCOUNT_FILE: str = ""  # Path to service account JSON key file
    GOOGLE_SERVICE_ACCOUNT_JSON_B64: str = ""  # Base64 key for containerized deployments

    # Monitoring
    SENTRY_DSN: str = ""

    def get_service_account_path(self) -> str | None:
        """Return path to Google service account JSON file.

        Prefers GOOGLE_SERVICE_ACCOUNT_FILE (direct path) if set.
        Falls back to decoding GOOGLE_SERVICE_ACCOUNT_JSON_B64 into a temp file
        for containerized deployments where mounting a file is impractical.
        Returns None if neither is configured.
        """
        if self.GOOGLE_SERVICE_ACCOUNT_FILE:
            return self.GOOGLE_SERVICE_ACCOUNT_FILE
        if self.GOOGLE_SERVICE_ACCOUNT_JSON_B64:
            import base64
            import os
            import tempfile

            decoded = base64.b64decode(self.GOOGLE_SERVICE_ACCOUNT_JSON_B64)
            tmp_path = os.path.join(tempfile.gettempdir(), "crmsync-service-account.json")
            with open(tmp_path, "wb") as f:
                f.write(decoded)
            return tmp_path
        return None


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
