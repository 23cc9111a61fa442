"""SQLAlchemy persistence for the clinic domain."""

from .models import ConsultationModel, LocalPatientModel, MedicalRecordModel

__all__ = ["ConsultationModel", "LocalPatientModel", "MedicalRecordModel"]
