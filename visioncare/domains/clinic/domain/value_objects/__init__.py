"""Clinic domain value objects."""

from .consultation_status import ConsultationStatus, ExternalSyncStatus
from .identity import (
    NameAgreement,
    compare_names,
    digits_only,
    format_cpf,
    normalize_cpf,
    normalize_name,
    normalize_phone,
)
from .match_confidence import MatchConfidence
from .ophthalmic_exam import (
    CURRENT_EXAM_SCHEMA_VERSION,
    IntraocularPressure,
    OphthalmicExam,
    Refraction,
    VisualAcuity,
)
from .patient_snapshot import PatientSnapshot
from .schedule_status import ScheduleStatus

__all__ = [
    "ConsultationStatus",
    "ExternalSyncStatus",
    "MatchConfidence",
    "NameAgreement",
    "compare_names",
    "digits_only",
    "format_cpf",
    "normalize_cpf",
    "normalize_name",
    "normalize_phone",
    "CURRENT_EXAM_SCHEMA_VERSION",
    "IntraocularPressure",
    "OphthalmicExam",
    "Refraction",
    "VisualAcuity",
    "PatientSnapshot",
    "ScheduleStatus",
]
