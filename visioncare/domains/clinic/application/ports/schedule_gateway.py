# ============================================================================
# SCOPE: APPLICATION LAYER (Clinic)
# Description: External scheduling system port.
# ============================================================================
"""External Schedule Gateway Port.

Interface to the scheduling system that owns appointments. The clinic only
reads appointments and writes back the final status.
"""

from dataclasses import dataclass
from datetime import date
from typing import Protocol, runtime_checkable

from ...domain.entities import ExternalAppointment
from ...domain.value_objects import ScheduleStatus


@dataclass(frozen=True)
class AppointmentFilters:
    """Listing filters, all optional."""

    date_from: date | None = None
    date_to: date | None = None
    status: ScheduleStatus | None = None
    doctor_id: str | None = None
    limit: int | None = None
    offset: int | None = None


@runtime_checkable
class IExternalScheduleGateway(Protocol):
    """Interface for the external scheduling system.

    Implementations: RESTExternalScheduleGateway
    """

    async def list_appointments(self, filters: AppointmentFilters) -> list[ExternalAppointment]:
        """List appointments ordered by date and time.

        Raises:
            UpstreamError: If the scheduling system cannot be queried.
        """
        ...

    async def get_appointment(self, appointment_id: str) -> ExternalAppointment | None:
        """Get a single appointment, None when it does not exist.

        Raises:
            UpstreamError: If the scheduling system cannot be queried.
        """
        ...

    async def update_status(self, appointment_id: str, status: ScheduleStatus) -> bool:
        """Write an appointment status.

        Returns:
            True when the appointment row was updated.

        Raises:
            UpstreamError: If the scheduling system cannot be reached.
        """
        ...
