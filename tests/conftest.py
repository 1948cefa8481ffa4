"""Shared fixtures for the CRM sync test suite.

Provides:
- A TTLCache driven by a fake clock
- FakeCRM: an in-memory CRMConnector with call recording
- Raw LeadConnector payload builders
- A clients directory with one CRM client and one spreadsheet-only client
- A FastAPI app wired to those clients plus an async HTTP client for it
"""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.crmsync.api.deps import get_sheets
from src.crmsync.connectors.base import CRMConnector
from src.crmsync.connectors.errors import CRMRequestError
from src.crmsync.core.cache import TTLCache
from src.crmsync.core.clients import ClientConfigLoader, get_client_loader
from src.crmsync.main import create_app
from src.crmsync.schemas.crm import Appointment, Contact, Invoice, Transaction

ACME_SECRET = "acme-secret-123"
MANUAL_SECRET = "manual-secret-456"


# ── Cache ────────────────────────────────────────────────────────────────────


class FakeClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock) -> TTLCache:
    return TTLCache(clock=clock)


# ── Fake connector ───────────────────────────────────────────────────────────


class FakeCRM(CRMConnector):
    """In-memory connector that records every call it receives."""

    crm_type = "fake"

    def __init__(
        self,
        invoices: list[Invoice] | None = None,
        contacts: dict[str, Contact] | None = None,
        appointments: list[Appointment] | None = None,
        transactions: list[Transaction] | None = None,
        failing_contacts: set[str] | None = None,
        healthy: bool = True,
    ) -> None:
        super().__init__(httpx.AsyncClient())
        self.invoices = invoices or []
        self.contacts = contacts or {}
        self.appointments = appointments or []
        self.transactions = transactions or []
        self.failing_contacts = failing_contacts or set()
        self.healthy = healthy
        self.calls: list[tuple] = []
        self.closed = False

    async def fetch_invoices(self, start: datetime, end: datetime) -> list[Invoice]:
        self.calls.append(("fetch_invoices", start, end))
        return list(self.invoices)

    async def fetch_appointments(
        self, user_ids: list[str], start: datetime, end: datetime
    ) -> list[Appointment]:
        self.calls.append(("fetch_appointments", tuple(user_ids), start, end))
        return list(self.appointments)

    async def fetch_contact(self, contact_id: str) -> Contact:
        self.calls.append(("fetch_contact", contact_id))
        if contact_id in self.failing_contacts:
            raise CRMRequestError(f"fake fetch_contact {contact_id}", "HTTP 500: boom")
        return self.contacts.get(contact_id, Contact(id=contact_id))

    async def fetch_transactions(self, start: datetime, end: datetime) -> list[Transaction]:
        self.calls.append(("fetch_transactions", start, end))
        return list(self.transactions)

    async def health_check(self) -> bool:
        return self.healthy

    async def aclose(self) -> None:
        self.closed = True
        await super().aclose()

    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def fake_crm() -> FakeCRM:
    return FakeCRM()


# ── Raw payload builders ─────────────────────────────────────────────────────


def lc_invoice(
    invoice_id: str,
    issue_date: str | None,
    *,
    contact_id: str | None = "c1",
    total: float = 100,
    number: str = "1001",
    **extra,
) -> dict:
    """A raw LeadConnector /invoices/ item."""
    raw = {
        "_id": invoice_id,
        "invoiceNumber": number,
        "status": "paid",
        "amountPaid": total,
        "amountDue": 0,
        "total": total,
        "liveMode": True,
        "altType": "location",
        "altId": "loc-1",
        "companyId": "co-1",
    }
    if issue_date is not None:
        raw["issueDate"] = issue_date
    if contact_id is not None:
        raw["contactDetails"] = {
            "id": contact_id,
            "name": f"Contact {contact_id}",
            "email": f"{contact_id}@example.com",
            "phoneNo": "+15550100",
            "address": {
                "addressLine1": "1 Main St",
                "city": "Austin",
                "state": "TX",
                "postalCode": "78701",
            },
        }
    raw.update(extra)
    return raw


def lc_transaction(
    invoice_id: str,
    when: str,
    *,
    status: str = "succeeded",
    snapshot: dict | None = None,
) -> dict:
    """A raw LeadConnector /payments/transactions item."""
    return {
        "_id": f"txn-{invoice_id}-{when}",
        "entityId": invoice_id,
        "status": status,
        "fulfilledAt": when,
        "chargeSnapshot": snapshot if snapshot is not None else {"mode": "cash"},
    }


# ── Clients directory + app ──────────────────────────────────────────────────


def _write_config(clients_dir: Path, client_id: str, body: dict) -> None:
    (clients_dir / client_id).mkdir(parents=True)
    (clients_dir / client_id / "config.json").write_text(json.dumps(body), encoding="utf-8")


@pytest.fixture
def clients_dir(tmp_path) -> Path:
    root = tmp_path / "clients"
    _write_config(
        root,
        "acme",
        {
            "clientId": "acme",
            "clientName": "Acme Plumbing",
            "apiSecret": ACME_SECRET,
            "crm": {"type": "leadconnector", "apiToken": "pit-token", "locationId": "loc-1"},
            "spreadsheetId": "sheet-acme",
            "timezone": "America/Chicago",
            "teamUserIds": ["u1", "u2"],
        },
    )
    _write_config(
        root,
        "manual",
        {
            "clientId": "manual",
            "clientName": "Manual Co",
            "apiSecret": MANUAL_SECRET,
            "crm": {"type": "spreadsheet"},
            "spreadsheetId": "sheet-manual",
            "timezone": "America/New_York",
        },
    )
    (root / "_template").mkdir()
    return root


@pytest.fixture
def loader(clients_dir) -> ClientConfigLoader:
    return ClientConfigLoader(clients_dir)


@pytest.fixture
def sheets_writer():
    """Stand-in for SheetsWriter; tests set return values on write_rows."""
    from unittest.mock import AsyncMock, MagicMock

    writer = MagicMock()
    writer.write_rows = AsyncMock()
    return writer


@pytest.fixture
def crm_factory(fake_crm):
    """Patch the connector factory behind get_crm so it hands out FakeCRM."""
    with patch("src.crmsync.api.deps.create_crm_connector", return_value=fake_crm) as factory:
        yield factory


@pytest.fixture
def app(loader, crm_factory, sheets_writer):
    """App with the clients directory, FakeCRM and a mocked sheets writer swapped in."""
    application = create_app()
    application.dependency_overrides[get_client_loader] = lambda: loader
    application.dependency_overrides[get_sheets] = lambda: sheets_writer
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing the API."""
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def auth_headers(secret: str = ACME_SECRET, client_id: str | None = "acme") -> dict[str, str]:
    headers = {"Authorization": f"Bearer {secret}"}
    if client_id is not None:
        headers["X-Client-ID"] = client_id
    return headers
