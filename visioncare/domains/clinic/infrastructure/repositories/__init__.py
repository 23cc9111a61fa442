"""SQLAlchemy repositories for the clinic domain."""

from .consultation_repository import SQLAlchemyConsultationRepository
from .local_patient_repository import SQLAlchemyLocalPatientRepository
from .medical_record_repository import SQLAlchemyMedicalRecordRepository

__all__ = [
    "SQLAlchemyConsultationRepository",
    "SQLAlchemyLocalPatientRepository",
    "SQLAlchemyMedicalRecordRepository",
]
