"""
Clinic Application Ports

Interfaces for the three stores the clinic works across.
"""

from .central_registry import ICentralRegistryClient
from .consultation_repository import ConsultationFilters, IConsultationRepository
from .medical_record_repository import IMedicalRecordRepository
from .patient_repository import ILocalPatientRepository
from .schedule_gateway import AppointmentFilters, IExternalScheduleGateway

__all__ = [
    "AppointmentFilters",
    "ConsultationFilters",
    "ICentralRegistryClient",
    "IConsultationRepository",
    "IExternalScheduleGateway",
    "ILocalPatientRepository",
    "IMedicalRecordRepository",
]
