"""Tests for the offset/limit paginator's short-page termination and pacing."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from src.crmsync.connectors.errors import CRMRequestError
from src.crmsync.connectors.pagination import describe_http_error, extract_items, paginate


# ── Fixtures ─────────────────────────────────────────────────────────────────


def _listing(total: int, data_key: str = "invoices"):
    """Handler serving ``total`` numbered items, recording each request."""
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        limit = int(request.url.params["limit"])
        offset = int(request.url.params["offset"])
        items = [{"n": n} for n in range(offset, min(offset + limit, total))]
        return httpx.Response(200, json={data_key: items})

    return handler, requests


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url="https://crm.test", transport=httpx.MockTransport(handler))


class TestPaginate:
    @pytest.mark.parametrize(
        "total,page_size,expected_calls",
        [(0, 100, 1), (99, 100, 1), (100, 100, 2), (250, 100, 3), (300, 100, 4), (7, 3, 3)],
    )
    async def test_call_count_is_floor_plus_one(self, total, page_size, expected_calls):
        handler, requests = _listing(total)
        async with _client(handler) as client:
            items = await paginate(
                client, "/invoices/", {"altId": "loc"}, "invoices", page_size=page_size, delay_seconds=0
            )

        assert len(requests) == expected_calls == total // page_size + 1
        assert [item["n"] for item in items] == list(range(total))

    async def test_sends_fixed_params_with_limit_and_offset(self):
        handler, requests = _listing(150)
        async with _client(handler) as client:
            await paginate(client, "/invoices/", {"altType": "location", "altId": "loc"}, "invoices", delay_seconds=0)

        assert [r.url.params["offset"] for r in requests] == ["0", "100"]
        assert all(r.url.params["limit"] == "100" for r in requests)
        assert all(r.url.params["altType"] == "location" for r in requests)

    async def test_sleeps_before_each_follow_up_page_only(self):
        handler, _ = _listing(250)
        with patch("src.crmsync.connectors.pagination.asyncio.sleep", new_callable=AsyncMock) as sleep:
            async with _client(handler) as client:
                await paginate(client, "/invoices/", {}, "invoices", delay_seconds=0.25)

        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.25)

    async def test_falls_back_to_data_field(self):
        handler, _ = _listing(3, data_key="data")
        async with _client(handler) as client:
            items = await paginate(client, "/x", {}, "invoices", delay_seconds=0)
        assert len(items) == 3

    async def test_failure_on_later_page_aborts_without_partial_results(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params["offset"] == "100":
                return httpx.Response(429, text="rate limited")
            return httpx.Response(200, json={"invoices": [{}] * 100})

        async with _client(handler) as client:
            with pytest.raises(CRMRequestError) as exc_info:
                await paginate(client, "/invoices/", {}, "invoices", delay_seconds=0)

        message = str(exc_info.value)
        assert "/invoices/" in message
        assert "offset 100" in message
        assert "429" in message

    async def test_non_json_body_is_a_request_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>oops</html>")

        async with _client(handler) as client:
            with pytest.raises(CRMRequestError):
                await paginate(client, "/invoices/", {}, "invoices", delay_seconds=0)

    async def test_transport_error_is_a_request_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(CRMRequestError) as exc_info:
                await paginate(client, "/invoices/", {}, "invoices", delay_seconds=0)
        assert "connection refused" in str(exc_info.value)

    async def test_rejects_non_positive_page_size(self):
        async with _client(lambda r: httpx.Response(200, json={})) as client:
            with pytest.raises(ValueError):
                await paginate(client, "/x", {}, "x", page_size=0)


class TestHelpers:
    def test_extract_items_order_of_precedence(self):
        assert extract_items({"invoices": [1], "data": [2]}, "invoices") == [1]
        assert extract_items({"data": [2], "items": [3]}, "invoices") == [2]
        assert extract_items({"items": [3]}, "invoices") == [3]
        assert extract_items({"invoices": None}, "invoices") == []
        assert extract_items(["not", "a", "dict"], "invoices") == []

    def test_describe_http_error_includes_truncated_body(self):
        request = httpx.Request("GET", "https://crm.test/x")
        response = httpx.Response(400, text="x" * 500, request=request)
        exc = httpx.HTTPStatusError("bad", request=request, response=response)

        description = describe_http_error(exc)
        assert description.startswith("HTTP 400: ")
        assert len(description) == len("HTTP 400: ") + 300
