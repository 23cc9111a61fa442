"""
Get Medical History Use Case

Everything known about a CPF: the registry record, the local patient and
its medical records, newest first. The registry lookup is best effort so
that the history stays readable while the registry is down.
"""

import logging

from visioncare.core.domain.exceptions import DomainException, UpstreamError, ValidationError

from ..dto import MedicalHistory, Result
from ..ports import ICentralRegistryClient, ILocalPatientRepository, IMedicalRecordRepository
from ...domain.entities import CentralCustomer
from ...domain.value_objects import normalize_cpf

logger = logging.getLogger(__name__)


class GetMedicalHistoryUseCase:
    def __init__(
        self,
        registry: ICentralRegistryClient,
        patients: ILocalPatientRepository,
        medical_records: IMedicalRecordRepository,
    ) -> None:
        self._registry = registry
        self._patients = patients
        self._medical_records = medical_records

    async def execute(self, cpf: str) -> Result[MedicalHistory]:
        normalized = normalize_cpf(cpf)
        if normalized is None:
            return Result.fail(ValidationError("CPF must contain 11 digits", field="cpf"))

        customer, registry_error = await self._find_customer(normalized)
        try:
            patient = await self._patients.find_by_cpf(normalized)
            records = await self._medical_records.find_by_patient(patient.id) if patient and patient.id else []
        except DomainException as e:
            logger.warning(f"Could not read medical history of CPF {normalized[:3]}***: {e.message}")
            return Result.fail(e)

        return Result.ok(
            MedicalHistory(
                cpf=normalized,
                customer=customer,
                patient=patient,
                records=records,
                registry_error=registry_error,
            )
        )

    async def _find_customer(self, cpf: str) -> tuple[CentralCustomer | None, str | None]:
        try:
            return await self._registry.find_by_cpf(cpf), None
        except UpstreamError as e:
            logger.warning(f"Central registry unavailable for history lookup: {e.message}")
            return None, e.message
