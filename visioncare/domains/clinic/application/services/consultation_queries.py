# ============================================================================
# SCOPE: APPLICATION LAYER (Clinic)
# Description: Read-only consultation listings and dashboard counters.
# ============================================================================
"""Consultation Query Service."""

from collections.abc import Callable
from datetime import datetime

import pytz

from visioncare.core.domain.entities import utc_now

from ..dto import ConsultationStats
from ..ports import ConsultationFilters, IConsultationRepository
from ...domain.entities import Consultation
from ...domain.value_objects import ConsultationStatus


class ConsultationQueryService:
    """Listings by filters, by patient and by doctor, plus the day's counters."""

    def __init__(
        self,
        consultations: IConsultationRepository,
        timezone: str = "America/Sao_Paulo",
        clock: Callable[[], datetime] = utc_now,
    ):
        self._consultations = consultations
        self._timezone = pytz.timezone(timezone)
        self._clock = clock

    async def search(self, filters: ConsultationFilters | None = None) -> list[Consultation]:
        return await self._consultations.find_by_filters(filters or ConsultationFilters())

    async def list_for_patient(self, patient_ref: str) -> list[Consultation]:
        return await self._consultations.find_by_filters(ConsultationFilters(patient_ref=patient_ref))

    async def list_for_doctor(self, doctor_ref: str) -> list[Consultation]:
        return await self._consultations.find_by_filters(ConsultationFilters(doctor_ref=doctor_ref))

    async def stats(self) -> ConsultationStats:
        """Open and closed totals, and how many consultations were created today."""
        totals = await self._consultations.count_by_status()
        today = await self._consultations.count_by_status(created_from=self.start_of_today())
        return ConsultationStats(
            today=sum(today.values()),
            waiting=totals.get(ConsultationStatus.WAITING, 0),
            in_progress=totals.get(ConsultationStatus.IN_PROGRESS, 0),
            completed=totals.get(ConsultationStatus.COMPLETED, 0),
            cancelled=totals.get(ConsultationStatus.CANCELLED, 0),
        )

    def start_of_today(self) -> datetime:
        """Local midnight in the clinic's timezone, as an aware datetime."""
        local_now = self._clock().astimezone(self._timezone)
        return self._timezone.localize(datetime(local_now.year, local_now.month, local_now.day))
