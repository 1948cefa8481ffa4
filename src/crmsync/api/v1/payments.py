"""POST /api/sync-payment-types -- invoices joined with the payment methods that settled them."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from src.crmsync.api.deps import get_client, get_crm, get_sheets
from src.crmsync.api.responses import sync_payload, write_rows_if_requested
from src.crmsync.connectors.base import CRMConnector
from src.crmsync.core.dates import InvalidWindowError, local_now, year_window
from src.crmsync.schemas.api import YearSyncRequest
from src.crmsync.schemas.client import ClientConfig
from src.crmsync.services.payments import PaymentTypeService
from src.crmsync.services.sheets import SheetsWriter

router = APIRouter(prefix="/api", tags=["sync"])


@router.post("/sync-payment-types")
async def sync_payment_types(
    body: YearSyncRequest,
    client: ClientConfig = Depends(get_client),
    crm: CRMConnector = Depends(get_crm),
    sheets: SheetsWriter | None = Depends(get_sheets),
):
    if body.action != "ytd":
        raise InvalidWindowError(
            "invalid_action", f"Unknown action: {body.action}. Only 'ytd' is supported."
        )
    window = year_window(body.year or local_now(client.timezone).year, client.timezone)

    rowset = await PaymentTypeService(crm).fetch_and_transform(window)

    sheet = await write_rows_if_requested(
        body.write_to_sheet, sheets, client, client.sheet_names.payment_types, rowset
    )
    return sync_payload(body.action, client, rowset, sheet)
