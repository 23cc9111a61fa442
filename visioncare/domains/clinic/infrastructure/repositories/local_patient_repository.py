"""
Local Patient Repository Implementation

SQLAlchemy implementation of ILocalPatientRepository.
"""

from sqlalchemy import select

from visioncare.core.domain.entities import new_id, utc_now

from ...application.ports import ILocalPatientRepository
from ...domain.entities import LocalPatient
from ..persistence.sqlalchemy.models import LocalPatientModel
from .base import SQLAlchemyRepository


class SQLAlchemyLocalPatientRepository(SQLAlchemyRepository, ILocalPatientRepository):
    """Local patients, unique on CPF."""

    async def find_by_cpf(self, cpf: str) -> LocalPatient | None:
        result = await self._execute(select(LocalPatientModel).where(LocalPatientModel.cpf == cpf))
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def insert(self, patient: LocalPatient) -> LocalPatient:
        model = self._to_model(patient)
        self.session.add(model)
        await self._commit("LocalPatient", "cpf", patient.cpf)
        await self.session.refresh(model)
        return self._to_entity(model)

    # Mapping methods

    def _to_entity(self, model: LocalPatientModel) -> LocalPatient:
        return LocalPatient(
            id=model.id,  # type: ignore[arg-type]
            cpf=model.cpf,  # type: ignore[arg-type]
            name=model.name,  # type: ignore[arg-type]
            phone=model.phone,  # type: ignore[arg-type]
            email=model.email,  # type: ignore[arg-type]
            birth_date=model.birth_date,  # type: ignore[arg-type]
            address=dict(model.address or {}),
            insurance_info=dict(model.insurance_info or {}),
            emergency_contact=dict(model.emergency_contact or {}),
            created_at=model.created_at,  # type: ignore[arg-type]
            updated_at=model.updated_at,  # type: ignore[arg-type]
        )

    def _to_model(self, patient: LocalPatient) -> LocalPatientModel:
        now = utc_now()
        return LocalPatientModel(
            id=patient.id or new_id(),
            cpf=patient.cpf,
            name=patient.name,
            phone=patient.phone,
            email=patient.email,
            birth_date=patient.birth_date,
            address=patient.address or {},
            insurance_info=patient.insurance_info or {},
            emergency_contact=patient.emergency_contact or {},
            created_at=patient.created_at or now,
            updated_at=patient.updated_at or now,
        )
