"""Offset/limit pagination with fixed inter-page pacing.

Walks a listing endpoint to completion under the short-page policy: a page
holding fewer items than the page size is the last one. An exactly full page
therefore always costs one more request, and an empty page also terminates.
N items at page size P take floor(N/P) + 1 requests.

A failure on any page aborts the whole walk; no partial list is returned.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import structlog

from src.crmsync.connectors.errors import CRMRequestError
from src.crmsync.core.monitoring import track_crm_call

logger = structlog.get_logger(__name__)

DEFAULT_PAGE_SIZE = 100
DEFAULT_PAGE_DELAY_SECONDS = 0.25


def extract_items(body: Any, data_key: str) -> list[Any]:
    """Pull the item array out of one page body.

    Looks at ``data_key`` first, then the generic ``data`` and ``items``
    fields some endpoints use instead.
    """
    if not isinstance(body, dict):
        return []
    for key in (data_key, "data", "items"):
        items = body.get(key)
        if isinstance(items, list):
            return items
    return []


async def paginate(
    client: httpx.AsyncClient,
    path: str,
    params: dict[str, str],
    data_key: str,
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
    delay_seconds: float = DEFAULT_PAGE_DELAY_SECONDS,
    crm_type: str = "unknown",
) -> list[Any]:
    """Fetch every page of ``path`` and return the concatenated items.

    Args:
        client: Authenticated client with the backend base URL.
        path: Listing endpoint path.
        params: Fixed query parameters sent with every page.
        data_key: Name of the array field in each page body.
        page_size: ``limit`` sent per page; also the short-page threshold.
        delay_seconds: Pause before each follow-up page request.
        crm_type: Backend label for metrics.

    Raises:
        CRMRequestError: Any page failed; identifies path and offset.
    """
    if page_size < 1:
        raise ValueError("page_size must be positive")

    collected: list[Any] = []
    offset = 0
    pages = 0

    while True:
        if pages:
            await asyncio.sleep(delay_seconds)

        page_params = {**params, "limit": str(page_size), "offset": str(offset)}
        try:
            async with track_crm_call(crm_type, f"list:{path}"):
                response = await client.get(path, params=page_params)
                response.raise_for_status()
                body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(
                "pagination.page_failed",
                path=path,
                offset=offset,
                pages_fetched=pages,
                error=str(exc),
            )
            raise CRMRequestError(
                f"GET {path} (page at offset {offset})",
                describe_http_error(exc),
            ) from exc

        items = extract_items(body, data_key)
        collected.extend(items)
        pages += 1

        if len(items) < page_size:
            break
        offset += page_size

    logger.debug("pagination.complete", path=path, pages=pages, items=len(collected))
    return collected


def describe_http_error(exc: Exception) -> str:
    """Backend error message, including the response body for non-2xx statuses."""
    if isinstance(exc, httpx.HTTPStatusError):
        detail = exc.response.text[:300] if exc.response is not None else ""
        return f"HTTP {exc.response.status_code}: {detail}".strip()
    return str(exc) or exc.__class__.__name__
