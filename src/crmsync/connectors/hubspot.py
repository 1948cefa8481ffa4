"""HubSpot connector -- contacts projected onto the invoice shape.

HubSpot has no invoice object on the plans this service targets, so the
connector lists CRM contacts and reports each one as a zero-amount invoice
(prefix CONTACT-, status = lifecycle stage, issue date = createdate). That is
enough to drive the owner-enrichment pipeline and the sheet layout end to end.

Listing uses HubSpot's ``after`` cursor instead of offsets, with the same
fixed pause between pages as the offset paginator. Meetings need a paid API,
so appointments and transactions are always empty.
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
from src.crmsync.connectors.pagination import DEFAULT_PAGE_DELAY_SECONDS, DEFAULT_PAGE_SIZE
from src.crmsync.core.cache import TenantCache
from src.crmsync.core.dates import timestamp_ms, to_epoch_ms
from src.crmsync.schemas.crm import Appointment, Contact, Invoice, as_dict, as_text

logger = structlog.get_logger(__name__)

BASE_URL = "https://api.hubapi.com"
CONTACT_PROPERTIES = (
    "firstname,lastname,email,phone,address,city,state,zip,"
    "createdate,lifecyclestage,hubspot_owner_id"
)
CONTACT_CACHE_TTL_SECONDS = 21600


def _full_name(props: dict[str, Any]) -> str:
    return f"{as_text(props.get('firstname'))} {as_text(props.get('lastname'))}".strip()


def contact_from_hubspot(raw: Any) -> Contact:
    """Map a HubSpot contact object (``{id, properties}``) onto Contact."""
    raw = as_dict(raw)
    props = as_dict(raw.get("properties"))
    address = {
        "address1": props.get("address"),
        "city": props.get("city"),
        "state": props.get("state"),
        "zip": props.get("zip"),
    }
    contact = Contact.from_raw(
        {
            "id": raw.get("id"),
            "name": _full_name(props),
            "email": props.get("email"),
            "phone": props.get("phone"),
            "ownerId": props.get("hubspot_owner_id"),
            "address": address if any(address.values()) else None,
        }
    )
    return contact or Contact()


def normalize_contact_as_invoice(raw: Any) -> Invoice:
    props = as_dict(as_dict(raw).get("properties"))
    contact = contact_from_hubspot(raw)
    contact = contact.model_copy(update={"name": contact.name or "Unknown"})
    created = as_text(props.get("createdate")) or None
    return Invoice(
        id=contact.id,
        invoice_number=contact.id,
        invoice_number_prefix="CONTACT-",
        status=as_text(props.get("lifecyclestage")) or "new",
        issue_date=created,
        due_date=created,
        live_mode=True,
        alt_type="contact",
        alt_id=contact.id,
        contact_details=contact,
    )


class HubSpotCRM(CRMConnector):
    """HubSpot CRM v3 connector authenticated with a private-app token."""

    crm_type = "hubspot"

    def __init__(
        self,
        api_token: str,
        *,
        cache: TenantCache,
        base_url: str = BASE_URL,
        timeout: float = 30.0,
        page_size: int = DEFAULT_PAGE_SIZE,
        page_delay_seconds: float = DEFAULT_PAGE_DELAY_SECONDS,
        contact_ttl_seconds: int = CONTACT_CACHE_TTL_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_token:
            raise CRMConfigurationError("HubSpot requires apiToken")

        super().__init__(
            httpx.AsyncClient(
                base_url=base_url,
                headers={
                    "Authorization": f"Bearer {api_token}",
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                },
                timeout=timeout,
                transport=transport,
            )
        )
        self._cache = cache
        self._page_size = page_size
        self._page_delay_seconds = page_delay_seconds
        self._contact_ttl_seconds = contact_ttl_seconds

    async def _list_contacts(self) -> list[dict[str, Any]]:
        """Walk /crm/v3/objects/contacts until the response has no next cursor."""
        contacts: list[dict[str, Any]] = []
        after: str | None = None
        pages = 0

        while True:
            if pages:
                await asyncio.sleep(self._page_delay_seconds)
            params = {"limit": str(self._page_size), "properties": CONTACT_PROPERTIES}
            if after:
                params["after"] = after

            body = as_dict(await self._get_json("list_contacts", "/crm/v3/objects/contacts", params))
            contacts.extend(item for item in body.get("results") or [] if isinstance(item, dict))
            pages += 1

            next_after = as_text(as_dict(as_dict(body.get("paging")).get("next")).get("after"))
            if next_after and next_after == after:
                logger.warning("hubspot.cursor_repeated", after=after, pages=pages)
                break
            after = next_after
            if not after:
                break

        logger.debug("hubspot.contacts_listed", pages=pages, contacts=len(contacts))
        return contacts

    async def fetch_invoices(self, start: datetime, end: datetime) -> list[Invoice]:
        start_ms, end_ms = to_epoch_ms(start), to_epoch_ms(end)
        raw_contacts = await self._list_contacts()

        invoices = []
        for raw in raw_contacts:
            created_ms = timestamp_ms(as_dict(raw.get("properties")).get("createdate"))
            if created_ms is not None and start_ms <= created_ms < end_ms:
                invoices.append(normalize_contact_as_invoice(raw))

        logger.info(
            "hubspot.invoices_fetched",
            scanned=len(raw_contacts),
            in_window=len(invoices),
        )
        return invoices

    async def fetch_appointments(
        self,
        user_ids: list[str],
        start: datetime,
        end: datetime,
    ) -> list[Appointment]:
        return []

    async def fetch_contact(self, contact_id: str) -> Contact:
        cache_key = f"hs:contact:{contact_id}"
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        raw = await self._get_json(
            "fetch_contact",
            f"/crm/v3/objects/contacts/{quote(contact_id, safe='')}",
            {"properties": CONTACT_PROPERTIES},
        )
        contact = contact_from_hubspot(raw)
        contact = contact.model_copy(
            update={
                "id": contact.id or contact_id,
                "owner_id": contact.owner_id or "",
                "owner_name": await self._owner_name(contact.owner_id),
            }
        )

        self._cache.set(cache_key, contact, self._contact_ttl_seconds)
        return contact

    async def _owner_name(self, owner_id: str | None) -> str:
        """Resolve a HubSpot owner id to a display name; blank on any failure."""
        if not owner_id:
            return ""
        cache_key = f"hs:owner:{owner_id}"
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            owner = as_dict(
                await self._get_json("fetch_owner", f"/crm/v3/owners/{quote(owner_id, safe='')}")
            )
        except CRMError as exc:
            logger.debug("hubspot.owner_lookup_failed", owner_id=owner_id, error=str(exc))
            return ""

        name = f"{as_text(owner.get('firstName'))} {as_text(owner.get('lastName'))}".strip()
        name = name or as_text(owner.get("email"))
        self._cache.set(cache_key, name, self._contact_ttl_seconds)
        return name

    async def health_check(self) -> bool:
        try:
            response = await self._client.get("/crm/v3/objects/contacts", params={"limit": "1"})
        except Exception as exc:
            logger.warning("hubspot.health_check_failed", error=str(exc))
            return False
        return response.status_code == 200
