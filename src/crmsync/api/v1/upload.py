"""POST /api/upload-data -- manual row upload for clients without a CRM.

Rows may be objects keyed by column name or positional arrays. Objects are
projected onto the canonical header order (unknown keys dropped, missing
columns blank); arrays pass through unchanged.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from src.crmsync.api.deps import get_client, get_sheets
from src.crmsync.api.errors import ApiError
from src.crmsync.api.responses import write_rows_if_requested
from src.crmsync.core.dates import utc_now_iso
from src.crmsync.schemas.api import UploadDataRequest
from src.crmsync.schemas.client import ClientConfig
from src.crmsync.schemas.crm import (
    APPOINTMENT_HEADERS,
    INVOICE_HEADERS,
    PAYMENT_TYPE_HEADERS,
    RowSet,
)
from src.crmsync.services.sheets import SheetsWriter

router = APIRouter(prefix="/api", tags=["upload"])

UPLOAD_HEADERS: dict[str, list[str]] = {
    "invoices": INVOICE_HEADERS,
    "appointments": APPOINTMENT_HEADERS,
    "payment_types": PAYMENT_TYPE_HEADERS,
}


class _UploadedRow:
    """Adapter giving an uploaded row the to_values() interface RowSet expects."""

    def __init__(self, raw: dict[str, Any] | list[Any]) -> None:
        self._raw = raw

    def to_values(self, headers: list[str] | None = None) -> list[Any]:
        if isinstance(self._raw, list):
            return list(self._raw)
        return [self._raw.get(column, "") for column in headers or []]


def _sheet_name(client: ClientConfig, data_type: str) -> str:
    names = client.sheet_names
    return {
        "invoices": names.invoices,
        "appointments": names.appointments,
        "payment_types": names.payment_types,
    }[data_type]


@router.post("/upload-data")
async def upload_data(
    body: UploadDataRequest,
    client: ClientConfig = Depends(get_client),
    sheets: SheetsWriter | None = Depends(get_sheets),
):
    if not body.data_type or body.rows is None:
        raise ApiError(400, "invalid_request", "dataType and rows array are required")
    headers = UPLOAD_HEADERS.get(body.data_type)
    if headers is None:
        raise ApiError(
            400,
            "invalid_request",
            f"Unknown dataType: {body.data_type}. Use one of: {', '.join(UPLOAD_HEADERS)}",
        )
    if not all(isinstance(row, (dict, list)) for row in body.rows):
        raise ApiError(400, "invalid_request", "Each row must be an object or an array")

    rowset = RowSet(headers=list(headers), rows=[_UploadedRow(row) for row in body.rows])
    sheet = await write_rows_if_requested(
        body.write_to_sheet, sheets, client, _sheet_name(client, body.data_type), rowset
    )

    payload: dict[str, Any] = {
        "ok": True,
        "dataType": body.data_type,
        "clientId": client.client_id,
        "headers": rowset.headers,
        "rows": rowset.values(),
        "count": len(rowset),
        "message": "Data validated and ready to write to spreadsheet",
        "timestamp": utc_now_iso(),
    }
    if sheet is not None:
        payload["sheet"] = sheet
    return payload
