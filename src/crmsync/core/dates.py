"""Date handling for sync windows and row formatting.

Two separate policies live here and must stay separate:

- Window math (year_window, month_window, resolve_window) builds naive
  wall-clock boundaries, so "this month" means what a person in the tenant's
  locale calls this month. The naive boundaries are pinned to the tenant's
  IANA zone (or the process zone) only when converted to epoch milliseconds.
- Row formatting (fmt_date_mdy) renders a stored timestamp's calendar date
  from its UTC components, with no zone conversion.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

logger = structlog.get_logger(__name__)

SYNC_ACTIONS = ("ytd", "thisMonth", "lastMonth", "last7days", "last30days", "custom")

_NUMERIC = re.compile(r"^-?\d+(\.\d+)?$")


class InvalidWindowError(ValueError):
    """A sync action or date range could not be turned into a window."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        super().__init__(message)


# ── Timestamp parsing & formatting (UTC face value) ────────────────────────


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string or epoch-millisecond value into an aware UTC datetime.

    Strings without an offset are read at UTC face value. Returns None for
    empty or unparseable input instead of raising.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if math.isnan(value) or math.isinf(value):
            return None
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    if _NUMERIC.match(text):
        return parse_timestamp(float(text))
    if text[-1] in "Zz":
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_epoch_ms(moment: datetime) -> int:
    """Epoch milliseconds for a datetime; naive values are process-local time."""
    return round(moment.timestamp() * 1000)


def timestamp_ms(value: Any) -> int | None:
    parsed = parse_timestamp(value)
    return to_epoch_ms(parsed) if parsed is not None else None


def fmt_date_mdy(value: Any) -> str:
    """Format an ISO string or epoch-ms value as MM/DD/YYYY using UTC components."""
    parsed = parse_timestamp(value)
    if parsed is None:
        return ""
    return f"{parsed.month:02d}/{parsed.day:02d}/{parsed.year:04d}"


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with a Z suffix."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# ── Window math (naive local wall clock) ───────────────────────────────────


@lru_cache(maxsize=64)
def _zone(tz: str) -> ZoneInfo | None:
    try:
        return ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("dates.unknown_timezone", timezone=tz)
        return None


def local_now(tz: str | None = None) -> datetime:
    """Current naive wall-clock time in ``tz`` (or the process zone)."""
    zone = _zone(tz) if tz else None
    if zone is None:
        return datetime.now()
    return datetime.now(zone).replace(tzinfo=None)


@dataclass(frozen=True)
class TimeWindow:
    """Half-open interval ``[start, end)``.

    ``start``/``end`` are naive wall-clock datetimes for calendar windows
    (aware ones are accepted for custom ranges). ``tz`` names the IANA zone
    the naive values belong to; without it they are process-local.
    """

    start: datetime
    end: datetime
    tz: str | None = None

    def _localize(self, moment: datetime) -> datetime:
        if moment.tzinfo is not None:
            return moment
        zone = _zone(self.tz) if self.tz else None
        if zone is None:
            return moment.astimezone()
        return moment.replace(tzinfo=zone)

    @property
    def start_at(self) -> datetime:
        return self._localize(self.start)

    @property
    def end_at(self) -> datetime:
        return self._localize(self.end)

    @property
    def start_ms(self) -> int:
        return to_epoch_ms(self.start_at)

    @property
    def end_ms(self) -> int:
        return to_epoch_ms(self.end_at)

    def contains_ms(self, ms: int | None) -> bool:
        return ms is not None and self.start_ms <= ms < self.end_ms


def year_window(year: int, tz: str | None = None) -> TimeWindow:
    """Jan 1 00:00 of ``year`` up to Jan 1 00:00 of the next year."""
    return TimeWindow(datetime(year, 1, 1), datetime(year + 1, 1, 1), tz)


def month_window(year: int, month: int, tz: str | None = None) -> TimeWindow:
    """First day 00:00 of ``month`` (1-12) up to the first day of the next month."""
    if not 1 <= month <= 12:
        raise InvalidWindowError("invalid_month", f"Month must be 1-12, got {month}")
    start = datetime(year, month, 1)
    end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
    return TimeWindow(start, end, tz)


def trailing_days_window(days: int, now: datetime | None = None, tz: str | None = None) -> TimeWindow:
    """The last ``days`` days up to ``now`` (wall clock)."""
    current = now or local_now(tz)
    return TimeWindow(current - timedelta(days=days), current, tz)


def custom_window(start_date: str, end_date: str) -> TimeWindow:
    start = parse_timestamp(start_date)
    end = parse_timestamp(end_date)
    if start is None or end is None:
        raise InvalidWindowError("invalid_dates", "startDate and endDate must be ISO 8601 dates")
    return TimeWindow(start, end)


def resolve_window(
    action: str,
    *,
    year: int | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    now: datetime | None = None,
    tz: str | None = None,
) -> TimeWindow:
    """Turn a sync action into a window.

    Actions: ytd (calendar year, default current), thisMonth, lastMonth,
    last7days, last30days, custom (requires start_date and end_date).
    """
    current = now or local_now(tz)

    if action == "ytd":
        return year_window(year or current.year, tz)
    if action == "thisMonth":
        return month_window(current.year, current.month, tz)
    if action == "lastMonth":
        if current.month == 1:
            return month_window(current.year - 1, 12, tz)
        return month_window(current.year, current.month - 1, tz)
    if action == "last7days":
        return trailing_days_window(7, current, tz)
    if action == "last30days":
        return trailing_days_window(30, current, tz)
    if action == "custom":
        if not start_date or not end_date:
            raise InvalidWindowError("missing_dates", "custom action requires startDate and endDate")
        return custom_window(start_date, end_date)

    raise InvalidWindowError(
        "invalid_action",
        f"Unknown action: {action}. Use one of: {', '.join(SYNC_ACTIONS)}",
    )
