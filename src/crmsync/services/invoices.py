"""Invoice sync service -- fetch, owner enrichment, and row projection.

Works with any CRMConnector. Owner lookups go through the connector's
cache-backed fetch_contact, so a contact shared by many invoices costs one
backend call per cache lifetime.
"""

from __future__ import annotations

import asyncio

import structlog

from src.crmsync.connectors.base import CRMConnector
from src.crmsync.core.dates import TimeWindow, fmt_date_mdy, month_window, year_window
from src.crmsync.schemas.crm import INVOICE_HEADERS, Invoice, InvoiceRow, Owner, RowSet

logger = structlog.get_logger(__name__)

DEFAULT_LOOKUP_BATCH_SIZE = 25
DEFAULT_LOOKUP_PAUSE_SECONDS = 0.25


def invoice_to_row(invoice: Invoice, owner_map: dict[str, Owner]) -> InvoiceRow:
    """Project one invoice plus its resolved owner onto the flat row shape."""
    contact = invoice.contact_details
    address = contact.address if contact else None
    owner = owner_map.get(contact.id) if contact and contact.id else None
    owner = owner or Owner()

    return InvoiceRow(
        invoice_id=invoice.id,
        invoice_number=invoice.invoice_number,
        invoice_display=invoice.display_number,
        invoice_status=invoice.status,
        amount_paid=invoice.amount_paid,
        amount_due=invoice.amount_due,
        amount_total=invoice.total,
        issue_date=fmt_date_mdy(invoice.issue_date),
        due_date=fmt_date_mdy(invoice.due_date),
        live_mode="true" if invoice.live_mode else "false",
        alt_type=invoice.alt_type,
        alt_id=invoice.alt_id,
        company_id=invoice.company_id,
        contact_id=contact.id if contact else "",
        owner_id=owner.owner_id,
        owner_name=owner.owner_name,
        contact_name=contact.name if contact else "",
        contact_email=contact.email if contact else "",
        contact_phone=contact.phone_no if contact else "",
        contact_addr1=address.address_line1 if address else "",
        contact_city=address.city if address else "",
        contact_state=address.state if address else "",
        contact_postal=address.postal_code if address else "",
    )


class InvoiceService:
    """Fetches a window of invoices and turns them into enriched rows.

    Args:
        crm: Connector for the tenant's backend.
        lookup_batch_size: Owner lookups issued between pauses.
        lookup_pause_seconds: Pause after each full batch of lookups.
    """

    def __init__(
        self,
        crm: CRMConnector,
        *,
        lookup_batch_size: int = DEFAULT_LOOKUP_BATCH_SIZE,
        lookup_pause_seconds: float = DEFAULT_LOOKUP_PAUSE_SECONDS,
    ) -> None:
        self._crm = crm
        self._lookup_batch_size = lookup_batch_size
        self._lookup_pause_seconds = lookup_pause_seconds

    async def fetch_invoices_for_window(self, window: TimeWindow) -> list[Invoice]:
        return await self._crm.fetch_invoices(window.start_at, window.end_at)

    async def fetch_invoices_for_year(self, year: int, tz: str | None = None) -> list[Invoice]:
        return await self.fetch_invoices_for_window(year_window(year, tz))

    async def fetch_invoices_for_month(
        self, year: int, month: int, tz: str | None = None
    ) -> list[Invoice]:
        return await self.fetch_invoices_for_window(month_window(year, month, tz))

    async def build_owner_lookup(self, invoices: list[Invoice]) -> dict[str, Owner]:
        """Resolve the owner of every distinct embedded contact.

        Lookups run one at a time in first-seen order. A failed lookup maps
        that contact to an empty Owner and the loop carries on.
        """
        contact_ids = list(dict.fromkeys(inv.contact_id for inv in invoices if inv.contact_id))
        logger.info("invoice_service.owner_lookup_started", contacts=len(contact_ids))

        owner_map: dict[str, Owner] = {}
        for count, contact_id in enumerate(contact_ids):
            if count and count % self._lookup_batch_size == 0:
                await asyncio.sleep(self._lookup_pause_seconds)
            try:
                contact = await self._crm.fetch_contact(contact_id)
            except Exception as exc:
                logger.warning(
                    "invoice_service.owner_lookup_failed",
                    contact_id=contact_id,
                    error=str(exc),
                )
                owner_map[contact_id] = Owner()
                continue
            owner_map[contact_id] = Owner(
                owner_id=contact.owner_id or "",
                owner_name=contact.owner_name or "",
            )

        logger.info(
            "invoice_service.owner_lookup_complete",
            contacts=len(owner_map),
            with_owner=sum(1 for owner in owner_map.values() if owner.owner_id),
        )
        return owner_map

    def transform_to_rows(
        self, invoices: list[Invoice], owner_map: dict[str, Owner]
    ) -> list[InvoiceRow]:
        return [invoice_to_row(invoice, owner_map) for invoice in invoices]

    def invoice_to_row(self, invoice: Invoice, owner_map: dict[str, Owner]) -> InvoiceRow:
        return invoice_to_row(invoice, owner_map)

    @staticmethod
    def get_headers() -> list[str]:
        return list(INVOICE_HEADERS)

    async def fetch_and_transform(self, window: TimeWindow) -> RowSet:
        """Fetch invoices in ``window``, enrich with owners, return the row set."""
        invoices = await self.fetch_invoices_for_window(window)
        owner_map = await self.build_owner_lookup(invoices)
        rows = self.transform_to_rows(invoices, owner_map)
        logger.info("invoice_service.transformed", invoices=len(invoices), rows=len(rows))
        return RowSet(headers=self.get_headers(), rows=rows)
