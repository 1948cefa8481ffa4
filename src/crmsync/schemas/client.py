"""Pydantic schemas for tenant (client) configuration.

Client configs live on disk as camelCase JSON (clients/<clientId>/config.json);
the models accept those aliases and expose snake_case attributes.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CRMType(str, Enum):
    """CRM backends a tenant can declare."""

    LEADCONNECTOR = "leadconnector"
    HUBSPOT = "hubspot"
    SERVICETITAN = "servicetitan"
    JOBBER = "jobber"
    SPREADSHEET = "spreadsheet"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CRMConfig(_CamelModel):
    """CRM credentials for one tenant.

    ``type`` is a plain string so that unknown backends reach the connector
    factory and are reported there as unsupported.
    """

    type: str
    api_token: str | None = None
    location_id: str | None = None
    api_version: str | None = None
    # ServiceTitan
    tenant_id: str | None = None
    client_id: str | None = None
    client_secret: str | None = None
    # Spreadsheet-only mode
    spreadsheet_id: str | None = None
    worksheet_name: str | None = None


class SheetNames(_CamelModel):
    """Worksheet names inside the tenant spreadsheet."""

    invoices: str = "Invoices"
    appointments: str = "Appointments"
    payment_types: str = "Payment Types"


class CustomCalculations(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    commission_rate: float | None = None
    include_non_live_invoices: bool | None = None


class ClientConfig(_CamelModel):
    """Everything the service knows about one tenant."""

    client_id: str
    client_name: str
    api_secret: str
    crm: CRMConfig
    spreadsheet_id: str
    timezone: str
    team_user_ids: list[str] = Field(default_factory=list)
    sheet_names: SheetNames = Field(default_factory=SheetNames)
    custom_calculations: CustomCalculations = Field(default_factory=CustomCalculations)

    def public_summary(self) -> dict[str, Any]:
        """Config fields that are safe to echo back to the caller."""
        return {
            "clientId": self.client_id,
            "clientName": self.client_name,
            "crmType": self.crm.type,
            "timezone": self.timezone,
        }
