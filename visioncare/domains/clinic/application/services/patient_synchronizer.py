"""
Local Patient Synchronizer

Find-or-create of the local patient row keyed by CPF. Safe to call
concurrently: the unique CPF constraint decides the winner and the loser
reads the winner's row.
"""

import logging

from visioncare.core.domain.exceptions import ConflictError, UpstreamError, ValidationError

from ..dto import PatientSyncData
from ..ports import ILocalPatientRepository
from ...domain.entities import LocalPatient
from ...domain.value_objects import normalize_cpf, normalize_phone

logger = logging.getLogger(__name__)


class LocalPatientSynchronizer:
    """Guarantee exactly one local patient per CPF."""

    def __init__(self, patients: ILocalPatientRepository):
        self._patients = patients

    async def sync(self, data: PatientSyncData) -> LocalPatient:
        """Return the local patient for this CPF, creating it if needed.

        An existing row is returned unchanged, whatever the incoming data.

        Raises:
            ValidationError: If the CPF is missing or not 11 digits.
            UpstreamError: If the local store fails.
        """
        cpf = normalize_cpf(data.cpf)
        if cpf is None:
            raise ValidationError("A valid CPF (11 digits) is required to sync the patient", field="cpf")

        existing = await self._patients.find_by_cpf(cpf)
        if existing:
            return existing

        patient = LocalPatient(
            cpf=cpf,
            name=(data.name or "").strip(),
            phone=normalize_phone(data.phone),
            email=data.email,
            birth_date=data.birth_date,
        )
        try:
            created = await self._patients.insert(patient)
            logger.info(f"Local patient {created.id} created for CPF {cpf}")
            return created
        except ConflictError:
            winner = await self._patients.find_by_cpf(cpf)
            if winner is None:
                raise UpstreamError(
                    "local_store",
                    f"Patient with CPF {cpf} reported as duplicate but cannot be read back",
                )
            logger.info(f"Local patient for CPF {cpf} created concurrently, reusing {winner.id}")
            return winner
