"""POST /api/sync-invoices -- invoice rows with owner enrichment for a date window."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends

from src.crmsync.api.deps import get_cache_for_client, get_client, get_crm, get_sheets
from src.crmsync.api.responses import sync_payload, write_rows_if_requested
from src.crmsync.config import get_settings
from src.crmsync.connectors.base import CRMConnector
from src.crmsync.core.cache import TenantCache
from src.crmsync.core.dates import resolve_window
from src.crmsync.schemas.api import SyncInvoicesRequest
from src.crmsync.schemas.client import ClientConfig
from src.crmsync.services.invoices import InvoiceService
from src.crmsync.services.sheets import SheetsWriter

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["sync"])


@router.post("/sync-invoices")
async def sync_invoices(
    body: SyncInvoicesRequest,
    client: ClientConfig = Depends(get_client),
    crm: CRMConnector = Depends(get_crm),
    cache: TenantCache = Depends(get_cache_for_client),
    sheets: SheetsWriter | None = Depends(get_sheets),
):
    """Sync invoices for ytd, thisMonth, lastMonth, last7days, last30days or custom.

    With ``refreshCache`` (the default) this client's cached contacts are
    dropped first so owner reassignments show up immediately.
    """
    window = resolve_window(
        body.action,
        year=body.year,
        start_date=body.start_date,
        end_date=body.end_date,
        tz=client.timezone,
    )

    if body.refresh_cache:
        cleared = cache.clear()
        logger.info("api.client_cache_cleared", client_id=client.client_id, entries=cleared)

    settings = get_settings()
    service = InvoiceService(
        crm,
        lookup_batch_size=settings.OWNER_LOOKUP_BATCH_SIZE,
        lookup_pause_seconds=settings.OWNER_LOOKUP_PAUSE_SECONDS,
    )
    rowset = await service.fetch_and_transform(window)

    sheet = await write_rows_if_requested(
        body.write_to_sheet, sheets, client, client.sheet_names.invoices, rowset
    )
    return sync_payload(body.action, client, rowset, sheet)
