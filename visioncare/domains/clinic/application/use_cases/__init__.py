"""Clinic use cases."""

from .complete_registration import CompleteRegistrationUseCase
from .get_medical_history import GetMedicalHistoryUseCase
from .list_appointments import ListAppointmentsUseCase
from .start_consultation import StartConsultationUseCase

__all__ = [
    "CompleteRegistrationUseCase",
    "GetMedicalHistoryUseCase",
    "ListAppointmentsUseCase",
    "StartConsultationUseCase",
]
