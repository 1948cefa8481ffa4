"""Request bodies for the sync API.

Bodies are camelCase JSON. Every field is optional at the schema level so
that a missing ``action`` reaches the window resolver and is reported as
invalid_action, the same as an unknown one.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    client_id: str | None = None


class SyncInvoicesRequest(_Body):
    action: str = ""
    year: int | None = None
    start_date: str | None = None
    end_date: str | None = None
    refresh_cache: bool = True
    write_to_sheet: bool = False


class YearSyncRequest(_Body):
    """Body for the year-only syncs (appointments, payment types)."""

    action: str = ""
    year: int | None = None
    write_to_sheet: bool = False


class UploadDataRequest(_Body):
    data_type: str = ""
    rows: list[Any] | None = None
    write_to_sheet: bool = False
