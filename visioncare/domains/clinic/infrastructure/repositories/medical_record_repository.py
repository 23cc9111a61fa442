"""
Medical Record Repository Implementation

Insert-only; the unique consultation_id makes finalization step 2 idempotent.
"""

from sqlalchemy import select

from ...application.ports import IMedicalRecordRepository
from ...domain.entities import MedicalRecord
from ...domain.value_objects import OphthalmicExam
from ..persistence.sqlalchemy.models import MedicalRecordModel
from .base import SQLAlchemyRepository


class SQLAlchemyMedicalRecordRepository(SQLAlchemyRepository, IMedicalRecordRepository):
    async def find_by_consultation(self, consultation_id: str) -> MedicalRecord | None:
        result = await self._execute(
            select(MedicalRecordModel).where(MedicalRecordModel.consultation_id == consultation_id)
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def find_by_patient(self, patient_id: str) -> list[MedicalRecord]:
        result = await self._execute(
            select(MedicalRecordModel)
            .where(MedicalRecordModel.patient_id == patient_id)
            .order_by(MedicalRecordModel.consultation_date.desc(), MedicalRecordModel.created_at.desc())
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def create(self, record: MedicalRecord) -> MedicalRecord:
        model = self._to_model(record)
        self.session.add(model)
        await self._commit("MedicalRecord", "consultation_id", record.consultation_id)
        return record

    # Mapping methods

    def _to_entity(self, model: MedicalRecordModel) -> MedicalRecord:
        return MedicalRecord(
            id=model.id,  # type: ignore[arg-type]
            consultation_id=model.consultation_id,  # type: ignore[arg-type]
            patient_id=model.patient_id,  # type: ignore[arg-type]
            doctor_id=model.doctor_id,  # type: ignore[arg-type]
            consultation_date=model.consultation_date,  # type: ignore[arg-type]
            chief_complaint=model.chief_complaint,  # type: ignore[arg-type]
            anamnesis=model.anamnesis,  # type: ignore[arg-type]
            physical_exam=OphthalmicExam.from_storage(model.physical_exam),  # type: ignore[arg-type]
            diagnosis=model.diagnosis,  # type: ignore[arg-type]
            prescription=model.prescription,  # type: ignore[arg-type]
            follow_up_date=model.follow_up_date,  # type: ignore[arg-type]
            created_at=model.created_at,  # type: ignore[arg-type]
        )

    def _to_model(self, record: MedicalRecord) -> MedicalRecordModel:
        return MedicalRecordModel(
            id=record.id,
            consultation_id=record.consultation_id,
            patient_id=record.patient_id,
            doctor_id=record.doctor_id,
            consultation_date=record.consultation_date,
            chief_complaint=record.chief_complaint,
            anamnesis=record.anamnesis,
            physical_exam=record.physical_exam.to_storage(),
            diagnosis=record.diagnosis,
            prescription=record.prescription,
            follow_up_date=record.follow_up_date,
            created_at=record.created_at,
        )
