"""Payment-type joiner -- attaches the payment method(s) used to settle each invoice.

Only succeeded transactions inside the window count. Each surviving
transaction contributes a (type, detail) pair to its invoice's bucket; the
row reports the latest pair plus every distinct type and detail seen.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from src.crmsync.connectors.base import CRMConnector
from src.crmsync.core.dates import TimeWindow, fmt_date_mdy, timestamp_ms
from src.crmsync.schemas.crm import (
    PAYMENT_TYPE_HEADERS,
    Invoice,
    PaymentTypeRow,
    RowSet,
    Transaction,
    as_dict,
    as_text,
)

logger = structlog.get_logger(__name__)


def normalize_payment_type(value: str) -> str:
    """Lower-case and trim; "cheque" is reported as "check"."""
    normalized = (value or "").strip().lower()
    return "check" if normalized == "cheque" else normalized


def derive_payment(txn: Transaction) -> tuple[str, str]:
    """Return (payment type, human-readable detail) for one transaction.

    Probes, in order: a manual payment mode (cash/cheque with a cheque
    number), the first card charge's payment method (last4 and brand), then
    the bare payment method type.
    """
    snapshot = txn.charge_snapshot

    manual_mode = as_text(snapshot.get("mode"))
    if manual_mode:
        number = as_text(as_dict(snapshot.get("cheque")).get("number")) or as_text(
            as_dict(snapshot.get("check")).get("number")
        )
        return normalize_payment_type(manual_mode), f"#{number}" if number else ""

    charges = as_dict(snapshot.get("charges")).get("data")
    first_charge = as_dict(charges[0]) if isinstance(charges, list) and charges else {}
    method_details = as_dict(first_charge.get("payment_method_details"))
    method_type = as_text(method_details.get("type"))
    if method_type:
        card = as_dict(method_details.get("card"))
        last4 = as_text(card.get("last4"))
        brand = as_text(card.get("brand"))
        if last4:
            detail = f"•••• {last4} ({brand})" if brand else f"•••• {last4}"
        else:
            detail = f"({brand})" if brand else ""
        return normalize_payment_type(method_type), detail

    fallback = as_text(as_dict(snapshot.get("payment_method")).get("type"))
    return normalize_payment_type(fallback), ""


@dataclass
class PaymentBucket:
    """Accumulated payment info for one invoice."""

    types: set[str] = field(default_factory=set)
    details: set[str] = field(default_factory=set)
    latest_ms: int | None = None
    latest_type: str = ""
    latest_detail: str = ""

    def add(self, payment_type: str, detail: str, ms: int) -> None:
        self.types.add(payment_type)
        if detail:
            self.details.add(detail)
        # Strictly later only: on a tie the first transaction seen stays latest.
        if self.latest_ms is None or ms > self.latest_ms:
            self.latest_ms = ms
            self.latest_type = payment_type
            self.latest_detail = detail


def build_payment_map(
    transactions: list[Transaction], start_ms: int, end_ms: int
) -> dict[str, PaymentBucket]:
    """Group succeeded, in-window transactions by the invoice they settle."""
    payment_map: dict[str, PaymentBucket] = {}

    for txn in transactions:
        if txn.status.lower() != "succeeded":
            continue
        invoice_id = txn.invoice_id
        if not invoice_id:
            continue
        ms = timestamp_ms(txn.timestamp_value)
        if ms is None or ms < start_ms or ms >= end_ms:
            continue

        payment_type, detail = derive_payment(txn)
        if not payment_type:
            continue

        payment_map.setdefault(invoice_id, PaymentBucket()).add(payment_type, detail, ms)

    return payment_map


def to_payment_type_rows(
    invoices: list[Invoice], payment_map: dict[str, PaymentBucket]
) -> list[PaymentTypeRow]:
    rows = []
    for invoice in invoices:
        bucket = payment_map.get(invoice.id)
        rows.append(
            PaymentTypeRow(
                invoice_id=invoice.id,
                invoice_number=invoice.invoice_number,
                invoice_display=invoice.display_number,
                invoice_status=invoice.status,
                amount_paid=invoice.amount_paid,
                amount_due=invoice.amount_due,
                amount_total=invoice.total,
                issue_date=fmt_date_mdy(invoice.issue_date),
                due_date=fmt_date_mdy(invoice.due_date),
                latest_payment_type=bucket.latest_type if bucket else "",
                latest_payment_detail=bucket.latest_detail if bucket else "",
                latest_payment_date=(
                    fmt_date_mdy(bucket.latest_ms) if bucket and bucket.latest_ms else ""
                ),
                all_payment_types=" + ".join(sorted(bucket.types)) if bucket else "",
                all_payment_details=" + ".join(sorted(bucket.details)) if bucket else "",
            )
        )
    return rows


class PaymentTypeService:
    """Joins a window's invoices with the transactions that paid them."""

    def __init__(self, crm: CRMConnector) -> None:
        self._crm = crm

    async def fetch_and_transform(self, window: TimeWindow) -> RowSet:
        invoices = await self._crm.fetch_invoices(window.start_at, window.end_at)
        transactions = await self._crm.fetch_transactions(window.start_at, window.end_at)

        payment_map = build_payment_map(transactions, window.start_ms, window.end_ms)
        rows = to_payment_type_rows(invoices, payment_map)

        logger.info(
            "payment_service.transformed",
            invoices=len(invoices),
            transactions=len(transactions),
            invoices_with_payments=len(payment_map),
        )
        return RowSet(headers=list(PAYMENT_TYPE_HEADERS), rows=rows)
