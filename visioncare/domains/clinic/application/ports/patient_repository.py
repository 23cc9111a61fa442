"""
Local Patient Repository Port
"""

from typing import Protocol, runtime_checkable

from ...domain.entities import LocalPatient


@runtime_checkable
class ILocalPatientRepository(Protocol):
    """Interface for the local patient table (unique on CPF)."""

    async def find_by_cpf(self, cpf: str) -> LocalPatient | None:
        ...

    async def insert(self, patient: LocalPatient) -> LocalPatient:
        """Insert a new patient.

        Raises:
            ConflictError: If a patient with the same CPF already exists.
            UpstreamError: On any other storage failure.
        """
        ...
