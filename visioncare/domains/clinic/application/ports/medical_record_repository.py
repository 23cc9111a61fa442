"""
Medical Record Repository Port
"""

from typing import Protocol, runtime_checkable

from ...domain.entities import MedicalRecord


@runtime_checkable
class IMedicalRecordRepository(Protocol):
    """Interface for immutable medical records (one per consultation)."""

    async def find_by_consultation(self, consultation_id: str) -> MedicalRecord | None:
        ...

    async def find_by_patient(self, patient_id: str) -> list[MedicalRecord]:
        """Records of a local patient, latest consultation date first."""
        ...

    async def create(self, record: MedicalRecord) -> MedicalRecord:
        """Insert a record.

        Raises:
            ConflictError: If the consultation already has a record.
        """
        ...
