"""LeadConnector (GoHighLevel) connector -- invoices, appointments, transactions, contacts.

Key implementation details:
- Bearer token + ``Version`` header on every request, 30s client timeout
- Invoices and transactions have no reliable server-side date filter, so the
  full location listing is paged and filtered to [start, end) client-side
- Calendar events are fetched one team member at a time with a pause between
  users; events missing a contact name are backfilled from the cached
  contact lookup (best effort)
- Contact lookups are cached per tenant for 6 hours
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from src.crmsync.connectors.base import CRMConnector
from src.crmsync.connectors.errors import CRMConfigurationError, CRMError
from src.crmsync.connectors.pagination import (
    DEFAULT_PAGE_DELAY_SECONDS,
    DEFAULT_PAGE_SIZE,
    paginate,
)
from src.crmsync.core.cache import TenantCache
from src.crmsync.core.dates import timestamp_ms, to_epoch_ms
from src.crmsync.schemas.crm import (
    Appointment,
    Contact,
    Invoice,
    Owner,
    Transaction,
    as_amount,
    as_dict,
    as_text,
    first_text,
)

logger = structlog.get_logger(__name__)

BASE_URL = "https://services.leadconnectorhq.com"
DEFAULT_API_VERSION = "2021-07-28"
CONTACT_CACHE_TTL_SECONDS = 21600
TRANSACTION_PAGE_DELAY_SECONDS = 0.15
APPOINTMENT_USER_DELAY_SECONDS = 0.15


# ── Normalizers ────────────────────────────────────────────────────────────


def normalize_invoice(raw: dict[str, Any]) -> Invoice:
    """Map a raw /invoices/ item onto the Invoice schema."""
    return Invoice(
        id=first_text(raw, "_id", "id"),
        invoice_number=as_text(raw.get("invoiceNumber")),
        invoice_number_prefix=as_text(raw.get("invoiceNumberPrefix")) or "INV-",
        status=as_text(raw.get("status")),
        amount_paid=as_amount(raw.get("amountPaid")),
        amount_due=as_amount(raw.get("amountDue")),
        total=as_amount(raw.get("total") or raw.get("amount")),
        issue_date=as_text(raw.get("issueDate")) or None,
        due_date=as_text(raw.get("dueDate")) or None,
        live_mode=raw.get("liveMode") is True,
        alt_type=as_text(raw.get("altType")),
        alt_id=as_text(raw.get("altId")),
        company_id=as_text(raw.get("companyId")),
        contact_details=Contact.from_raw(raw.get("contactDetails")),
    )


def extract_owner(raw: Any) -> Owner:
    """Probe the owner fields in priority order: ownerId, owner{}, assignedTo*."""
    raw = as_dict(raw)
    nested = as_dict(raw.get("owner"))
    return Owner(
        owner_id=(
            as_text(raw.get("ownerId"))
            or as_text(nested.get("id"))
            or as_text(raw.get("assignedTo"))
            or as_text(raw.get("assignedToId"))
        ),
        owner_name=(
            as_text(raw.get("ownerName"))
            or as_text(nested.get("name"))
            or as_text(raw.get("assignedToName"))
        ),
    )


def _start_time(event: dict[str, Any]) -> str | int | float:
    for key in ("startTime", "start", "start_time"):
        value = event.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value
        if isinstance(value, str) and value:
            return value
    return ""


def normalize_appointment(event: dict[str, Any], user_id: str) -> Appointment:
    contact = as_dict(event.get("contact"))
    return Appointment(
        id=first_text(event, "id", "_id"),
        user_id=user_id,
        title=first_text(event, "title", "calendarTitle", "name"),
        start_time=_start_time(event),
        status=first_text(event, "status", "appointmentStatus"),
        contact_id=first_text(event, "contactId", "contact_id") or as_text(contact.get("id")),
        contact_name=first_text(event, "contactName", "contact_name") or as_text(contact.get("name")),
    )


# ── Connector ──────────────────────────────────────────────────────────────


class LeadConnectorCRM(CRMConnector):
    """LeadConnector REST API connector scoped to one location.

    Args:
        api_token: Location or agency bearer token.
        location_id: LeadConnector location (sub-account) id.
        cache: Tenant-scoped enrichment cache for contact lookups.
        api_version: Value of the ``Version`` header.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    crm_type = "leadconnector"

    def __init__(
        self,
        api_token: str,
        location_id: str,
        *,
        cache: TenantCache,
        api_version: str | None = None,
        base_url: str = BASE_URL,
        timeout: float = 30.0,
        page_size: int = DEFAULT_PAGE_SIZE,
        page_delay_seconds: float = DEFAULT_PAGE_DELAY_SECONDS,
        transaction_page_delay_seconds: float = TRANSACTION_PAGE_DELAY_SECONDS,
        user_delay_seconds: float = APPOINTMENT_USER_DELAY_SECONDS,
        contact_ttl_seconds: int = CONTACT_CACHE_TTL_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_token or not location_id:
            raise CRMConfigurationError("LeadConnector requires apiToken and locationId")

        super().__init__(
            httpx.AsyncClient(
                base_url=base_url,
                headers={
                    "Authorization": f"Bearer {api_token}",
                    "Version": api_version or DEFAULT_API_VERSION,
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                },
                timeout=timeout,
                transport=transport,
            )
        )
        self._location_id = location_id
        self._cache = cache
        self._page_size = page_size
        self._page_delay_seconds = page_delay_seconds
        self._transaction_page_delay_seconds = transaction_page_delay_seconds
        self._user_delay_seconds = user_delay_seconds
        self._contact_ttl_seconds = contact_ttl_seconds

    def _location_params(self) -> dict[str, str]:
        return {"altType": "location", "altId": self._location_id}

    async def fetch_invoices(self, start: datetime, end: datetime) -> list[Invoice]:
        """Page every location invoice, keep those issued in [start, end)."""
        raw_invoices = await paginate(
            self._client,
            "/invoices/",
            self._location_params(),
            "invoices",
            page_size=self._page_size,
            delay_seconds=self._page_delay_seconds,
            crm_type=self.crm_type,
        )

        start_ms, end_ms = to_epoch_ms(start), to_epoch_ms(end)
        invoices: list[Invoice] = []
        for raw in raw_invoices:
            if not isinstance(raw, dict):
                continue
            issued_ms = timestamp_ms(raw.get("issueDate"))
            if issued_ms is None or not start_ms <= issued_ms < end_ms:
                continue
            invoices.append(normalize_invoice(raw))

        logger.info(
            "leadconnector.invoices_fetched",
            location_id=self._location_id,
            scanned=len(raw_invoices),
            in_window=len(invoices),
        )
        return invoices

    async def fetch_transactions(self, start: datetime, end: datetime) -> list[Transaction]:
        """Page every payment transaction, keep those whose effective time is in [start, end)."""
        raw_transactions = await paginate(
            self._client,
            "/payments/transactions",
            self._location_params(),
            "transactions",
            page_size=self._page_size,
            delay_seconds=self._transaction_page_delay_seconds,
            crm_type=self.crm_type,
        )

        start_ms, end_ms = to_epoch_ms(start), to_epoch_ms(end)
        transactions: list[Transaction] = []
        for raw in raw_transactions:
            txn = Transaction.from_raw(raw)
            effective_ms = timestamp_ms(txn.timestamp_value)
            if effective_ms is not None and start_ms <= effective_ms < end_ms:
                transactions.append(txn)

        logger.info(
            "leadconnector.transactions_fetched",
            location_id=self._location_id,
            scanned=len(raw_transactions),
            in_window=len(transactions),
        )
        return transactions

    async def fetch_appointments(
        self,
        user_ids: list[str],
        start: datetime,
        end: datetime,
    ) -> list[Appointment]:
        """Fetch calendar events user by user, then backfill missing contact names."""
        start_ms, end_ms = to_epoch_ms(start), to_epoch_ms(end)
        appointments: list[Appointment] = []

        for index, user_id in enumerate(user_ids):
            if index:
                await asyncio.sleep(self._user_delay_seconds)
            body = as_dict(
                await self._get_json(
                    "fetch_appointments",
                    "/calendars/events",
                    {
                        "locationId": self._location_id,
                        "userId": user_id,
                        "startTime": str(start_ms),
                        "endTime": str(end_ms),
                    },
                )
            )
            events = body.get("events") or body.get("data") or []
            appointments.extend(
                normalize_appointment(event, user_id) for event in events if isinstance(event, dict)
            )

        # Calendar events often omit contactName; fetch_contact is cached, so
        # repeated contacts cost one call.
        for appointment in appointments:
            if appointment.contact_name or not appointment.contact_id:
                continue
            try:
                contact = await self.fetch_contact(appointment.contact_id)
            except CRMError as exc:
                logger.debug(
                    "leadconnector.contact_name_backfill_failed",
                    contact_id=appointment.contact_id,
                    error=str(exc),
                )
                continue
            appointment.contact_name = contact.name

        logger.info(
            "leadconnector.appointments_fetched",
            location_id=self._location_id,
            users=len(user_ids),
            appointments=len(appointments),
        )
        return appointments

    async def fetch_contact(self, contact_id: str) -> Contact:
        """Cache-first contact lookup with owner extraction."""
        cache_key = f"lc:contact:{contact_id}"
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        body = as_dict(
            await self._get_json("fetch_contact", f"/contacts/{quote(contact_id, safe='')}")
        )
        raw = body["contact"] if isinstance(body.get("contact"), dict) else body
        owner = extract_owner(raw)

        contact = Contact.from_raw(raw) or Contact()
        contact = contact.model_copy(
            update={
                "id": contact.id or contact_id,
                "owner_id": owner.owner_id,
                "owner_name": owner.owner_name,
            }
        )

        self._cache.set(cache_key, contact, self._contact_ttl_seconds)
        return contact

    async def health_check(self) -> bool:
        try:
            response = await self._client.get(f"/locations/{quote(self._location_id, safe='')}")
        except Exception as exc:
            logger.warning("leadconnector.health_check_failed", error=str(exc))
            return False
        return response.status_code == 200
