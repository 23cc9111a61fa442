"""
Consultation Repository Port

Durable storage of consultations. Every write is committed before the call
returns: this store is the only crash-recovery source.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, runtime_checkable

from ...domain.entities import Consultation
from ...domain.value_objects import ConsultationStatus


@dataclass(frozen=True)
class ConsultationFilters:
    """Listing filters, all optional. ``patient_name`` is a case-insensitive substring."""

    status: ConsultationStatus | None = None
    doctor_ref: str | None = None
    patient_ref: str | None = None
    patient_name: str | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
    limit: int | None = None
    offset: int | None = None


@runtime_checkable
class IConsultationRepository(Protocol):
    """Interface for consultation persistence."""

    async def find_by_id(self, consultation_id: str) -> Consultation | None:
        ...

    async def save(self, consultation: Consultation) -> Consultation:
        """Insert or fully overwrite a consultation (upsert on id)."""
        ...

    async def update_fields(
        self,
        consultation: Consultation,
        field_names: Iterable[str],
        expected_statuses: Iterable[ConsultationStatus] | None = None,
    ) -> None:
        """Write only the named attributes of the consultation.

        With ``expected_statuses`` the write is a compare-and-swap: it only
        applies while the stored status is one of them.

        Raises:
            NotFoundError: If the consultation does not exist.
            InvalidTransitionError: If the stored status is not expected.
        """
        ...

    async def find_by_statuses(self, statuses: Iterable[ConsultationStatus]) -> list[Consultation]:
        """Consultations in any of the statuses, newest first."""
        ...

    async def find_by_filters(self, filters: ConsultationFilters) -> list[Consultation]:
        """Consultations matching every given filter, newest first."""
        ...

    async def count_by_status(self, created_from: datetime | None = None) -> dict[ConsultationStatus, int]:
        """Number of consultations per status, optionally only those created since a moment."""
        ...

    async def find_pending_external_sync(self, limit: int, max_attempts: int) -> list[Consultation]:
        """Completed consultations whose external write-back is pending or failed, oldest first."""
        ...
