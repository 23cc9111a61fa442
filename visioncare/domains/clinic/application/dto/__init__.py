"""Clinic application DTOs."""

from .consultation_dtos import (
    AppointmentWithIdentity,
    ConsultationStats,
    FinalizationResult,
    MedicalHistory,
    PatientSyncData,
    ReconciliationReport,
    SagaStep,
    StartConsultationRequest,
    StartConsultationResult,
    StepOutcome,
    StepStatus,
)
from .identity_dtos import IdentityMatch, IdentityQuery, RegistrationDetails
from .result import ErrorKind, Result

__all__ = [
    "AppointmentWithIdentity",
    "ConsultationStats",
    "FinalizationResult",
    "MedicalHistory",
    "PatientSyncData",
    "ReconciliationReport",
    "SagaStep",
    "StartConsultationRequest",
    "StartConsultationResult",
    "StepOutcome",
    "StepStatus",
    "IdentityMatch",
    "IdentityQuery",
    "RegistrationDetails",
    "ErrorKind",
    "Result",
]
