"""CRM connector layer -- pluggable backends behind one async interface.

Provides the abstract CRMConnector with concrete implementations:
- LeadConnectorCRM: Primary backend (invoices, transactions, calendar events)
- HubSpotCRM: Contacts projected as invoices; no appointments or payments
- create_crm_connector / has_crm: Factory keyed on the tenant's CRM type
- paginate: Offset/limit walker with fixed inter-page pacing
"""

from src.crmsync.connectors.base import CRMConnector
from src.crmsync.connectors.errors import (
    CRMConfigurationError,
    CRMError,
    CRMNotImplementedError,
    CRMRequestError,
    NoCRMConfiguredError,
    UnsupportedCRMError,
)
from src.crmsync.connectors.factory import create_crm_connector, has_crm
from src.crmsync.connectors.hubspot import HubSpotCRM
from src.crmsync.connectors.leadconnector import LeadConnectorCRM
from src.crmsync.connectors.pagination import paginate

__all__ = [
    "CRMConnector",
    "LeadConnectorCRM",
    "HubSpotCRM",
    "create_crm_connector",
    "has_crm",
    "paginate",
    "CRMError",
    "CRMConfigurationError",
    "CRMNotImplementedError",
    "CRMRequestError",
    "NoCRMConfiguredError",
    "UnsupportedCRMError",
]
