"""Success payloads shared by the sync endpoints."""

from __future__ import annotations

from typing import Any

import structlog

from src.crmsync.api.errors import ApiError
from src.crmsync.core.dates import utc_now_iso
from src.crmsync.schemas.client import ClientConfig
from src.crmsync.schemas.crm import RowSet
from src.crmsync.services.sheets import SheetsWriter

logger = structlog.get_logger(__name__)


async def write_rows_if_requested(
    requested: bool,
    writer: SheetsWriter | None,
    client: ClientConfig,
    sheet_name: str,
    rowset: RowSet,
) -> dict[str, Any] | None:
    """Push ``rowset`` to the client's spreadsheet when the caller asked for it."""
    if not requested:
        return None
    if writer is None:
        raise ApiError(503, "sheets_not_configured", "No Google service account is configured")

    result = await writer.write_rows(
        client.spreadsheet_id, sheet_name, rowset.headers, rowset.values()
    )
    logger.info(
        "api.sheet_written",
        client_id=client.client_id,
        sheet_name=sheet_name,
        updated_rows=result.updated_rows,
    )
    return {
        "spreadsheetId": result.spreadsheet_id,
        "sheetName": result.sheet_name,
        "updatedRows": result.updated_rows,
        "updatedRange": result.updated_range,
    }


def sync_payload(
    action: str,
    client: ClientConfig,
    rowset: RowSet,
    sheet: dict[str, Any] | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "ok": True,
        "action": action,
        "clientId": client.client_id,
        "headers": rowset.headers,
        "rows": rowset.values(),
        "count": len(rowset),
        "timestamp": utc_now_iso(),
    }
    if sheet is not None:
        payload["sheet"] = sheet
    return payload
