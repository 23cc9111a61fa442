"""
Consultation Repository Implementation

SQLAlchemy implementation of IConsultationRepository. Partial updates
write only the requested columns so that edits of different fields by
different writers do not overwrite each other.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update

from visioncare.core.domain.exceptions import InvalidTransitionError, NotFoundError

from ...application.ports import ConsultationFilters, IConsultationRepository
from ...domain.entities import Consultation
from ...domain.value_objects import (
    ConsultationStatus,
    ExternalSyncStatus,
    OphthalmicExam,
    PatientSnapshot,
)
from ..persistence.sqlalchemy.models import ConsultationModel
from .base import SQLAlchemyRepository

# Entity attribute -> column name, where they differ
_COLUMN_NAMES = {
    "appointment_ref": "appointment_id",
    "patient_ref": "patient_id",
    "doctor_ref": "doctor_id",
    "started_at": "start_time",
    "completed_at": "end_time",
    "patient_snapshot": "patient_data",
    "medical_record_ref": "medical_record_id",
}


class SQLAlchemyConsultationRepository(SQLAlchemyRepository, IConsultationRepository):
    """Consultation persistence (durable source for crash recovery)."""

    async def find_by_id(self, consultation_id: str) -> Consultation | None:
        result = await self._execute(select(ConsultationModel).where(ConsultationModel.id == consultation_id))
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def save(self, consultation: Consultation) -> Consultation:
        """Insert or fully overwrite (upsert on id)."""
        values = self._column_values(consultation)
        result = await self._execute(select(ConsultationModel).where(ConsultationModel.id == consultation.id))
        model = result.scalar_one_or_none()
        if model:
            for column, value in values.items():
                setattr(model, column, value)
        else:
            model = ConsultationModel(**values)
            self.session.add(model)

        await self._commit("Consultation", "id", consultation.id)
        await self.session.refresh(model)
        return self._to_entity(model)

    async def update_fields(
        self,
        consultation: Consultation,
        field_names: Iterable[str],
        expected_statuses: Iterable[ConsultationStatus] | None = None,
    ) -> None:
        all_values = self._column_values(consultation)
        values = {}
        for name in field_names:
            column = _COLUMN_NAMES.get(name, name)
            values[column] = all_values[column]
        if not values:
            return

        stmt = update(ConsultationModel).where(ConsultationModel.id == consultation.id)
        if expected_statuses is not None:
            stmt = stmt.where(ConsultationModel.status.in_([s.value for s in expected_statuses]))

        result = await self._execute(stmt.values(**values))
        if result.rowcount == 0:
            await self.session.rollback()
            assert consultation.id is not None
            current = await self.find_by_id(consultation.id)
            if current is None:
                raise NotFoundError("Consultation", consultation.id)
            raise InvalidTransitionError("update", current.status.value)
        await self._commit("Consultation", "id", consultation.id)

    async def find_by_statuses(self, statuses: Iterable[ConsultationStatus]) -> list[Consultation]:
        result = await self._execute(
            select(ConsultationModel)
            .where(ConsultationModel.status.in_([s.value for s in statuses]))
            .order_by(ConsultationModel.created_at.desc())
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def find_by_filters(self, filters: ConsultationFilters) -> list[Consultation]:
        stmt = select(ConsultationModel)
        if filters.status:
            stmt = stmt.where(ConsultationModel.status == filters.status.value)
        if filters.doctor_ref:
            stmt = stmt.where(ConsultationModel.doctor_id == filters.doctor_ref)
        if filters.patient_ref:
            stmt = stmt.where(ConsultationModel.patient_id == filters.patient_ref)
        if filters.patient_name:
            patient_name = ConsultationModel.patient_data["name"].astext
            stmt = stmt.where(patient_name.icontains(filters.patient_name, autoescape=True))
        if filters.created_from:
            stmt = stmt.where(ConsultationModel.created_at >= filters.created_from)
        if filters.created_to:
            stmt = stmt.where(ConsultationModel.created_at <= filters.created_to)

        stmt = stmt.order_by(ConsultationModel.created_at.desc())
        if filters.offset:
            stmt = stmt.offset(filters.offset)
        if filters.limit:
            stmt = stmt.limit(filters.limit)

        result = await self._execute(stmt)
        return [self._to_entity(m) for m in result.scalars().all()]

    async def count_by_status(self, created_from: datetime | None = None) -> dict[ConsultationStatus, int]:
        stmt = select(ConsultationModel.status, func.count(ConsultationModel.id)).group_by(ConsultationModel.status)
        if created_from:
            stmt = stmt.where(ConsultationModel.created_at >= created_from)

        result = await self._execute(stmt)
        counts = {status: 0 for status in ConsultationStatus}
        for status, count in result.all():
            counts[ConsultationStatus(status)] = count
        return counts

    async def find_pending_external_sync(self, limit: int, max_attempts: int) -> list[Consultation]:
        result = await self._execute(
            select(ConsultationModel)
            .where(
                ConsultationModel.status == ConsultationStatus.COMPLETED.value,
                ConsultationModel.external_sync_status.in_(
                    [ExternalSyncStatus.PENDING.value, ExternalSyncStatus.FAILED.value]
                ),
                ConsultationModel.external_sync_attempts < max_attempts,
            )
            .order_by(ConsultationModel.end_time.asc())
            .limit(limit)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    # Mapping methods

    def _column_values(self, consultation: Consultation) -> dict[str, Any]:
        return {
            "id": consultation.id,
            "appointment_id": consultation.appointment_ref,
            "patient_id": consultation.patient_ref,
            "doctor_id": consultation.doctor_ref,
            "status": consultation.status.value,
            "start_time": consultation.started_at,
            "end_time": consultation.completed_at,
            "physical_exam": consultation.physical_exam.to_storage(),
            "chief_complaint": consultation.chief_complaint,
            "anamnesis": consultation.anamnesis,
            "notes": consultation.notes,
            "diagnosis": consultation.diagnosis,
            "prescription": consultation.prescription,
            "follow_up_date": consultation.follow_up_date,
            "cancellation_reason": consultation.cancellation_reason,
            "patient_data": consultation.patient_snapshot.to_dict(),
            "medical_record_id": consultation.medical_record_ref,
            "external_sync_status": consultation.external_sync_status.value,
            "external_sync_error": consultation.external_sync_error,
            "external_sync_attempts": consultation.external_sync_attempts,
            "created_at": consultation.created_at,
            "updated_at": consultation.updated_at,
        }

    def _to_entity(self, model: ConsultationModel) -> Consultation:
        # Stored JSON is validated again when read back
        return Consultation(
            id=model.id,  # type: ignore[arg-type]
            created_at=model.created_at,  # type: ignore[arg-type]
            updated_at=model.updated_at,  # type: ignore[arg-type]
            appointment_ref=model.appointment_id,  # type: ignore[arg-type]
            patient_ref=model.patient_id,  # type: ignore[arg-type]
            doctor_ref=model.doctor_id,  # type: ignore[arg-type]
            status=ConsultationStatus(model.status),
            started_at=model.start_time,  # type: ignore[arg-type]
            completed_at=model.end_time,  # type: ignore[arg-type]
            physical_exam=OphthalmicExam.from_storage(model.physical_exam),  # type: ignore[arg-type]
            chief_complaint=model.chief_complaint,  # type: ignore[arg-type]
            anamnesis=model.anamnesis,  # type: ignore[arg-type]
            notes=model.notes,  # type: ignore[arg-type]
            diagnosis=model.diagnosis,  # type: ignore[arg-type]
            prescription=model.prescription,  # type: ignore[arg-type]
            follow_up_date=model.follow_up_date,  # type: ignore[arg-type]
            cancellation_reason=model.cancellation_reason,  # type: ignore[arg-type]
            patient_snapshot=PatientSnapshot.from_dict(model.patient_data),  # type: ignore[arg-type]
            medical_record_ref=model.medical_record_id,  # type: ignore[arg-type]
            external_sync_status=ExternalSyncStatus(model.external_sync_status or "not_applicable"),
            external_sync_error=model.external_sync_error,  # type: ignore[arg-type]
            external_sync_attempts=model.external_sync_attempts or 0,  # type: ignore[arg-type]
        )
