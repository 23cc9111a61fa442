"""External Appointment Entity.

Read-only appointment owned by the external scheduling system.
"""

from dataclasses import dataclass
from datetime import date

from ..value_objects.schedule_status import ScheduleStatus


@dataclass(frozen=True)
class DoctorRef:
    id: str
    name: str | None = None


@dataclass(frozen=True)
class ExternalAppointment:
    """Agendamento externo."""

    id: str
    patient_name: str
    phone: str | None = None
    email: str | None = None
    cpf: str | None = None
    birth_date: str | None = None
    appointment_date: date | None = None
    time: str | None = None
    status: ScheduleStatus | str | None = None
    doctor: DoctorRef | None = None
