"""Appointment sync -- team calendar events projected onto flat rows."""

from __future__ import annotations

import structlog

from src.crmsync.connectors.base import CRMConnector
from src.crmsync.core.dates import TimeWindow, fmt_date_mdy
from src.crmsync.schemas.crm import APPOINTMENT_HEADERS, Appointment, AppointmentRow, RowSet

logger = structlog.get_logger(__name__)


def appointments_to_rows(appointments: list[Appointment]) -> list[AppointmentRow]:
    return [
        AppointmentRow(
            user_id=appointment.user_id,
            event_id=appointment.id,
            event_title=appointment.title,
            appt_date=fmt_date_mdy(appointment.start_time),
            status=appointment.status,
            contact_id=appointment.contact_id,
            contact_name=appointment.contact_name,
        )
        for appointment in appointments
    ]


class AppointmentService:
    def __init__(self, crm: CRMConnector) -> None:
        self._crm = crm

    async def fetch_and_transform(self, user_ids: list[str], window: TimeWindow) -> RowSet:
        appointments = await self._crm.fetch_appointments(user_ids, window.start_at, window.end_at)
        rows = appointments_to_rows(appointments)
        logger.info("appointment_service.transformed", users=len(user_ids), rows=len(rows))
        return RowSet(headers=list(APPOINTMENT_HEADERS), rows=rows)
