"""
List Appointments Use Case

Schedule listing annotated with a read-only identity resolution. Listing
never provisions registry records.
"""

import asyncio
import logging

from visioncare.core.domain.exceptions import DomainException

from ..dto import AppointmentWithIdentity, IdentityQuery, Result
from ..ports import AppointmentFilters, IExternalScheduleGateway
from ..services import IdentityResolver
from ...domain.entities import ExternalAppointment

logger = logging.getLogger(__name__)


class ListAppointmentsUseCase:
    def __init__(self, schedule: IExternalScheduleGateway, resolver: IdentityResolver) -> None:
        self._schedule = schedule
        self._resolver = resolver

    async def execute(self, filters: AppointmentFilters) -> Result[list[AppointmentWithIdentity]]:
        try:
            appointments = await self._schedule.list_appointments(filters)
            annotated = await asyncio.gather(*(self._annotate(a) for a in appointments))
        except DomainException as e:
            logger.warning(f"Could not list appointments: {e.message}")
            return Result.fail(e)
        return Result.ok(list(annotated))

    async def _annotate(self, appointment: ExternalAppointment) -> AppointmentWithIdentity:
        query = IdentityQuery(
            name=appointment.patient_name,
            phone=appointment.phone,
            cpf=appointment.cpf,
            birth_date=appointment.birth_date,
            email=appointment.email,
        )
        identity = await self._resolver.resolve(query, provision=False)
        return AppointmentWithIdentity(appointment=appointment, identity=identity)
