"""Medical Record Entity.

Immutable clinical snapshot produced only by finalizing a consultation.
"""

from dataclasses import dataclass, field
from datetime import date, datetime

from visioncare.core.domain.entities import new_id, utc_now

from ..value_objects.ophthalmic_exam import OphthalmicExam
from .consultation import Consultation


@dataclass(frozen=True)
class MedicalRecord:
    """Prontuário (um por consulta finalizada)."""

    consultation_id: str
    patient_id: str
    consultation_date: date
    doctor_id: str | None = None
    chief_complaint: str | None = None
    anamnesis: str | None = None
    physical_exam: OphthalmicExam = field(default_factory=OphthalmicExam)
    diagnosis: str | None = None
    prescription: str | None = None
    follow_up_date: date | None = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utc_now)

    @classmethod
    def from_consultation(cls, consultation: Consultation, patient_id: str, now: datetime | None = None) -> "MedicalRecord":
        """Freeze the clinical content of a consultation."""
        if consultation.id is None:
            raise ValueError("Consultation must be persisted before recording it")
        created_at = now or utc_now()
        return cls(
            consultation_id=consultation.id,
            patient_id=patient_id,
            consultation_date=consultation.started_at.date(),
            doctor_id=consultation.doctor_ref,
            chief_complaint=consultation.chief_complaint,
            anamnesis=consultation.anamnesis,
            physical_exam=consultation.physical_exam,
            diagnosis=consultation.diagnosis,
            prescription=consultation.prescription,
            follow_up_date=consultation.follow_up_date,
            created_at=created_at,
        )
