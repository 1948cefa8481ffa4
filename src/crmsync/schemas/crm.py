"""Pydantic schemas for normalized CRM records and their tabular projections.

Defines the tenant-agnostic types every connector produces:
- Records: Address, Contact, Owner, Invoice, Appointment, Transaction
- Row projections: InvoiceRow, AppointmentRow, PaymentTypeRow
- Header vocabularies: INVOICE_HEADERS, APPOINTMENT_HEADERS, PAYMENT_TYPE_HEADERS
- RowSet: the (headers, rows) pair handed to API responses and sheet writers

The ``from_raw`` constructors accept whatever shape the backend returned and
never raise: every field has an explicit fallback.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field


# ── Coercion helpers ───────────────────────────────────────────────────────


def as_text(value: Any) -> str:
    """Coerce a raw backend value to a string, falling back to ""."""
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return ""


def as_amount(value: Any) -> float:
    """Coerce a raw monetary value to a non-negative float, falling back to 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(amount) or math.isinf(amount) or amount < 0:
        return 0.0
    return amount


def first_text(raw: dict[str, Any], *keys: str) -> str:
    """Return the first non-empty string value among ``keys``."""
    for key in keys:
        text = as_text(raw.get(key))
        if text:
            return text
    return ""


def as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


# ── Records ────────────────────────────────────────────────────────────────


class Address(BaseModel):
    """Postal address attached to a contact."""

    address_line1: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""

    @classmethod
    def from_raw(cls, raw: Any) -> Address | None:
        if not isinstance(raw, dict):
            return None
        return cls(
            address_line1=first_text(raw, "addressLine1", "address1"),
            city=as_text(raw.get("city")),
            state=as_text(raw.get("state")),
            postal_code=first_text(raw, "postalCode", "zip"),
        )


class Contact(BaseModel):
    """A CRM contact, possibly carrying its account owner."""

    id: str = ""
    name: str = ""
    email: str = ""
    phone_no: str = ""
    owner_id: str | None = None
    owner_name: str | None = None
    address: Address | None = None

    @classmethod
    def from_raw(cls, raw: Any) -> Contact | None:
        """Build a Contact from an embedded or standalone backend snapshot."""
        if not isinstance(raw, dict):
            return None
        name = as_text(raw.get("name"))
        if not name:
            name = f"{as_text(raw.get('firstName'))} {as_text(raw.get('lastName'))}".strip()
        owner_id = first_text(raw, "ownerId")
        owner_name = first_text(raw, "ownerName")
        return cls(
            id=first_text(raw, "id", "_id"),
            name=name,
            email=as_text(raw.get("email")),
            phone_no=first_text(raw, "phoneNo", "phone"),
            owner_id=owner_id or None,
            owner_name=owner_name or None,
            address=Address.from_raw(raw.get("address")),
        )


class Owner(BaseModel):
    """Account owner (salesperson) of a contact. Empty strings mean unassigned."""

    owner_id: str = ""
    owner_name: str = ""


class Invoice(BaseModel):
    """Normalized invoice. Amounts are reported as-is, never reconciled."""

    id: str = ""
    invoice_number: str = ""
    invoice_number_prefix: str = "INV-"
    status: str = ""
    amount_paid: float = Field(default=0.0, ge=0)
    amount_due: float = Field(default=0.0, ge=0)
    total: float = Field(default=0.0, ge=0)
    issue_date: str | None = None
    due_date: str | None = None
    live_mode: bool = False
    alt_type: str = ""
    alt_id: str = ""
    company_id: str = ""
    contact_details: Contact | None = None

    @property
    def display_number(self) -> str:
        return f"{self.invoice_number_prefix or 'INV-'}{self.invoice_number}"

    @property
    def contact_id(self) -> str:
        return self.contact_details.id if self.contact_details else ""


class Appointment(BaseModel):
    """Calendar event booked for a team member.

    ``start_time`` is kept in whichever form the backend supplied (ISO string
    or epoch milliseconds); it is only normalized when formatted into a row.
    """

    id: str = ""
    title: str = ""
    start_time: str | int | float = ""
    status: str = ""
    contact_id: str = ""
    contact_name: str = ""
    user_id: str = ""


class Transaction(BaseModel):
    """Payment transaction settling an invoice."""

    id: str = ""
    entity_id: str = ""
    entity_source_id: str = ""
    status: str = ""
    fulfilled_at: str = ""
    created_at: str = ""
    updated_at: str = ""
    charge_snapshot: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: Any) -> Transaction:
        raw = as_dict(raw)
        return cls(
            id=first_text(raw, "_id", "id"),
            entity_id=as_text(raw.get("entityId")),
            entity_source_id=as_text(as_dict(raw.get("entitySource")).get("id")),
            status=as_text(raw.get("status")),
            fulfilled_at=as_text(raw.get("fulfilledAt")),
            created_at=as_text(raw.get("createdAt")),
            updated_at=as_text(raw.get("updatedAt")),
            charge_snapshot=as_dict(raw.get("chargeSnapshot")),
        )

    @property
    def invoice_id(self) -> str:
        """Invoice this transaction settles (entityId, else entitySource.id)."""
        return self.entity_id or self.entity_source_id

    @property
    def timestamp_value(self) -> str:
        """First non-empty of fulfilledAt, createdAt, updatedAt."""
        return self.fulfilled_at or self.created_at or self.updated_at


# ── Row projections ────────────────────────────────────────────────────────

INVOICE_HEADERS: list[str] = [
    "invoice_id",
    "invoice_number",
    "invoice_display",
    "invoice_status",
    "amount_paid",
    "amount_due",
    "amount_total",
    "issue_date",
    "due_date",
    "live_mode",
    "alt_type",
    "alt_id",
    "company_id",
    "contact_id",
    "owner_id",
    "owner_name",
    "contact_name",
    "contact_email",
    "contact_phone",
    "contact_addr1",
    "contact_city",
    "contact_state",
    "contact_postal",
]

APPOINTMENT_HEADERS: list[str] = [
    "user_id",
    "event_id",
    "event_title",
    "appt_date",
    "status",
    "contact_id",
    "contact_name",
]

PAYMENT_TYPE_HEADERS: list[str] = [
    "invoice_id",
    "invoice_number",
    "invoice_display",
    "invoice_status",
    "amount_paid",
    "amount_due",
    "amount_total",
    "issue_date",
    "due_date",
    "latest_payment_type",
    "latest_payment_detail",
    "latest_payment_date",
    "all_payment_types",
    "all_payment_details",
]


def _cell(value: Any) -> str | int | float:
    # Whole amounts go out as integers so the sheet shows 1000, not 1000.0.
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


class _Row(BaseModel):
    """Flat string/number row with a fixed column order."""

    def to_values(self, headers: list[str] | None = None) -> list[str | int | float]:
        columns = headers if headers is not None else list(type(self).model_fields)
        return [_cell(getattr(self, column, "")) for column in columns]


class InvoiceRow(_Row):
    invoice_id: str = ""
    invoice_number: str = ""
    invoice_display: str = ""
    invoice_status: str = ""
    amount_paid: float = 0.0
    amount_due: float = 0.0
    amount_total: float = 0.0
    issue_date: str = ""
    due_date: str = ""
    live_mode: str = "false"
    alt_type: str = ""
    alt_id: str = ""
    company_id: str = ""
    contact_id: str = ""
    owner_id: str = ""
    owner_name: str = ""
    contact_name: str = ""
    contact_email: str = ""
    contact_phone: str = ""
    contact_addr1: str = ""
    contact_city: str = ""
    contact_state: str = ""
    contact_postal: str = ""


class AppointmentRow(_Row):
    user_id: str = ""
    event_id: str = ""
    event_title: str = ""
    appt_date: str = ""
    status: str = ""
    contact_id: str = ""
    contact_name: str = ""


class PaymentTypeRow(_Row):
    invoice_id: str = ""
    invoice_number: str = ""
    invoice_display: str = ""
    invoice_status: str = ""
    amount_paid: float = 0.0
    amount_due: float = 0.0
    amount_total: float = 0.0
    issue_date: str = ""
    due_date: str = ""
    latest_payment_type: str = ""
    latest_payment_detail: str = ""
    latest_payment_date: str = ""
    all_payment_types: str = ""
    all_payment_details: str = ""


@dataclass
class RowSet:
    """Canonical header order plus the rows of one sync run."""

    headers: list[str]
    rows: list[Any] = field(default_factory=list)  # anything with to_values(headers)

    def values(self) -> list[list[str | int | float]]:
        """Rows as ordered value lists matching ``headers``."""
        return [row.to_values(self.headers) for row in self.rows]

    def __len__(self) -> int:
        return len(self.rows)
