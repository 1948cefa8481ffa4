"""Google Sheets writer for sync output.

Builds a Sheets v4 service from service-account credentials once per writer
and replaces a worksheet's contents with a header row plus values. All Google
API calls are wrapped in asyncio.to_thread() so the blocking client never
stalls the event loop.

A write is clear-then-update: a failure between the two calls leaves the
worksheet empty until the next successful sync.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from pydantic import BaseModel

logger = structlog.get_logger(__name__)

SHEETS_SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
]


class SheetWriteError(Exception):
    """The Sheets API rejected a clear or update call."""

    code = "sheet_write_failed"


class SheetWriteResult(BaseModel):
    """Outcome of replacing one worksheet's contents."""

    spreadsheet_id: str
    sheet_name: str
    updated_rows: int
    updated_range: str = ""


def _sheet_range(sheet_name: str) -> str:
    return "'" + sheet_name.replace("'", "''") + "'"


class SheetsWriter:
    """Async wrapper around the Sheets values API.

    Args:
        service_account_file: Path to the service account JSON key. The
            account must have edit access to every tenant spreadsheet.
    """

    def __init__(self, service_account_file: str) -> None:
        self._service_account_file = service_account_file
        self._service: Any = None

    def _get_service(self) -> Any:
        if self._service is None:
            logger.info("building_sheets_service")
            credentials = service_account.Credentials.from_service_account_file(
                self._service_account_file,
                scopes=SHEETS_SCOPES,
            )
            self._service = build("sheets", "v4", credentials=credentials, cache_discovery=False)
        return self._service

    async def write_rows(
        self,
        spreadsheet_id: str,
        sheet_name: str,
        headers: list[str],
        rows: list[list[Any]],
    ) -> SheetWriteResult:
        """Replace ``sheet_name`` with ``headers`` followed by ``rows``.

        Raises:
            SheetWriteError: The clear or update request failed.
        """
        service = self._get_service()
        target = _sheet_range(sheet_name)

        def _write() -> dict:
            values = service.spreadsheets().values()
            values.clear(spreadsheetId=spreadsheet_id, range=target, body={}).execute()
            return values.update(
                spreadsheetId=spreadsheet_id,
                range=f"{target}!A1",
                valueInputOption="RAW",
                body={"values": [list(headers), *rows]},
            ).execute()

        logger.info(
            "sheets.write_started",
            spreadsheet_id=spreadsheet_id,
            sheet_name=sheet_name,
            rows=len(rows),
        )
        try:
            result = await asyncio.to_thread(_write)
        except HttpError as exc:
            logger.error(
                "sheets.write_failed",
                spreadsheet_id=spreadsheet_id,
                sheet_name=sheet_name,
                error=str(exc),
            )
            raise SheetWriteError(f"Writing {sheet_name!r} failed: {exc}") from exc

        return SheetWriteResult(
            spreadsheet_id=spreadsheet_id,
            sheet_name=sheet_name,
            updated_rows=int(result.get("updatedRows", len(rows) + 1)),
            updated_range=result.get("updatedRange", ""),
        )


_writer: SheetsWriter | None = None


def get_sheets_writer() -> SheetsWriter | None:
    """Process-wide writer, or None when no service account is configured."""
    global _writer
    if _writer is None:
        from src.crmsync.config import get_settings

        path = get_settings().get_service_account_path()
        if not path:
            return None
        _writer = SheetsWriter(path)
    return _writer
