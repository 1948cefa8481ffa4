"""CRM connector abstract base class -- the capability set every backend implements.

Every CRM backend (LeadConnector, HubSpot, future ServiceTitan/Jobber)
implements this ABC. The connector factory picks the implementation from the
tenant's declared CRM type; the invoice, appointment and payment services
drive it without knowing which backend is behind it.

Connectors own all backend-specific request shaping, pagination and
response normalization. They never retry: a failed call surfaces as a single
CRMRequestError naming the operation, and retry policy belongs to the caller.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

import httpx
import structlog

from src.crmsync.connectors.errors import CRMRequestError
from src.crmsync.connectors.pagination import describe_http_error
from src.crmsync.core.monitoring import track_crm_call
from src.crmsync.schemas.crm import Appointment, Contact, Invoice, Transaction

logger = structlog.get_logger(__name__)


class CRMConnector(ABC):
    """Abstract interface for CRM backend operations.

    Methods:
        fetch_invoices: Invoices issued in [start, end).
        fetch_appointments: Calendar events for each team member in [start, end).
        fetch_contact: One contact with owner info, cache-backed.
        fetch_transactions: Payment transactions in [start, end); optional.
        health_check: One lightweight authenticated call; never raises.
    """

    crm_type: str = "unknown"

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @abstractmethod
    async def fetch_invoices(self, start: datetime, end: datetime) -> list[Invoice]:
        """Fetch invoices whose issue date falls in [start, end)."""
        ...

    @abstractmethod
    async def fetch_appointments(
        self,
        user_ids: list[str],
        start: datetime,
        end: datetime,
    ) -> list[Appointment]:
        """Fetch appointments for each user id, one user at a time."""
        ...

    @abstractmethod
    async def fetch_contact(self, contact_id: str) -> Contact:
        """Fetch a contact by id, including its owner when the CRM has one."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Verify the credentials work. Returns False on any failure."""
        ...

    async def fetch_transactions(self, start: datetime, end: datetime) -> list[Transaction]:
        """Fetch payment transactions in [start, end).

        Backends without a transactions endpoint keep this default: an empty
        list, which callers treat the same as "no transactions in range".
        """
        return []

    # ── HTTP plumbing ───────────────────────────────────────────────────

    async def _get_json(
        self,
        operation: str,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """GET ``path`` and decode JSON, wrapping every failure in CRMRequestError."""
        try:
            async with track_crm_call(self.crm_type, operation):
                response = await self._client.get(path, params=params)
                response.raise_for_status()
                return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "crm.request_failed",
                crm_type=self.crm_type,
                operation=operation,
                path=path,
                error=str(exc),
            )
            raise CRMRequestError(
                f"{self.crm_type} {operation}", describe_http_error(exc)
            ) from exc

    async def aclose(self) -> None:
        """Release the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> CRMConnector:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
