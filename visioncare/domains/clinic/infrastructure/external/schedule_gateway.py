"""
External Schedule Gateway (PostgREST)

Reads appointments from the scheduling project's ``agendamentos`` table and
writes back the final status.
"""

import logging
from datetime import UTC, date, datetime
from typing import Any

from ...application.ports import AppointmentFilters, IExternalScheduleGateway
from ...domain.entities import DoctorRef, ExternalAppointment
from ...domain.value_objects import ScheduleStatus
from .postgrest import PostgRESTClient

logger = logging.getLogger(__name__)

APPOINTMENT_SELECT = "*,medico:medicos(id,nome)"


class RESTExternalScheduleGateway(PostgRESTClient, IExternalScheduleGateway):
    """IExternalScheduleGateway over the scheduling system's PostgREST API."""

    def __init__(self, base_url: str, api_key: str, table: str = "agendamentos", **kwargs: Any):
        super().__init__("schedule_gateway", base_url, api_key, **kwargs)
        self.table = table

    async def list_appointments(self, filters: AppointmentFilters) -> list[ExternalAppointment]:
        params: list[tuple[str, str]] = [
            ("select", APPOINTMENT_SELECT),
            ("order", "data.asc,horario.asc"),
        ]
        if filters.date_from:
            params.append(("data", f"gte.{filters.date_from.isoformat()}"))
        if filters.date_to:
            params.append(("data", f"lte.{filters.date_to.isoformat()}"))
        if filters.status:
            params.append(("status", f"eq.{filters.status.value}"))
        if filters.doctor_id:
            params.append(("medico_id", f"eq.{filters.doctor_id}"))
        if filters.limit is not None:
            params.append(("limit", str(filters.limit)))
        if filters.offset is not None:
            params.append(("offset", str(filters.offset)))

        rows = await self._request("GET", self.table, params=params)
        return [self._to_appointment(row) for row in rows]

    async def get_appointment(self, appointment_id: str) -> ExternalAppointment | None:
        rows = await self._request(
            "GET",
            self.table,
            params={"select": APPOINTMENT_SELECT, "id": f"eq.{appointment_id}", "limit": "1"},
        )
        return self._to_appointment(rows[0]) if rows else None

    async def update_status(self, appointment_id: str, status: ScheduleStatus) -> bool:
        rows = await self._request(
            "PATCH",
            self.table,
            params={"id": f"eq.{appointment_id}"},
            json={"status": status.value, "updated_at": datetime.now(UTC).isoformat()},
            prefer="return=representation",
        )
        if not rows:
            logger.warning(f"Appointment {appointment_id} not found when setting status '{status.value}'")
        return bool(rows)

    # Mapping methods

    def _to_appointment(self, row: dict[str, Any]) -> ExternalAppointment:
        doctor_row = row.get("medico")
        doctor = None
        if isinstance(doctor_row, dict) and doctor_row.get("id"):
            doctor = DoctorRef(id=str(doctor_row["id"]), name=doctor_row.get("nome"))
        elif row.get("medico_id"):
            doctor = DoctorRef(id=str(row["medico_id"]))

        return ExternalAppointment(
            id=str(row["id"]),
            patient_name=row.get("nome") or "",
            phone=row.get("telefone"),
            email=row.get("email"),
            cpf=row.get("cpf"),
            birth_date=row.get("data_nascimento"),
            appointment_date=_parse_date(row.get("data")),
            time=row.get("horario"),
            status=ScheduleStatus.parse(row.get("status")),
            doctor=doctor,
        )


def _parse_date(value: Any) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        logger.warning(f"Unparseable appointment date: {value}")
        return None
