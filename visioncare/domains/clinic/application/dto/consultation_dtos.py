# ============================================================================
# SCOPE: APPLICATION LAYER (Clinic)
# Description: DTOs for consultation operations and the finalization saga.
# ============================================================================
"""Consultation DTOs."""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from visioncare.core.domain.exceptions import PartialFinalizationError

from ...domain.entities import CentralCustomer, Consultation, ExternalAppointment, LocalPatient, MedicalRecord
from ...domain.value_objects import ConsultationStatus, PatientSnapshot
from .identity_dtos import IdentityMatch

# =============================================================================
# Request DTOs
# =============================================================================


@dataclass(frozen=True)
class PatientSyncData:
    """Identity used to find or create the local patient."""

    cpf: str | None
    name: str
    phone: str | None = None
    email: str | None = None
    birth_date: date | None = None

    @classmethod
    def from_snapshot(cls, snapshot: PatientSnapshot) -> "PatientSyncData":
        birth_date = None
        if snapshot.birth_date:
            try:
                birth_date = date.fromisoformat(snapshot.birth_date[:10])
            except ValueError:
                birth_date = None
        return cls(
            cpf=snapshot.cpf,
            name=snapshot.name,
            phone=snapshot.phone,
            email=snapshot.email,
            birth_date=birth_date,
        )


@dataclass(frozen=True)
class StartConsultationRequest:
    """Start a consultation from an external appointment."""

    appointment_id: str
    consultation_id: str | None = None
    doctor_ref: str | None = None
    initial_status: ConsultationStatus = ConsultationStatus.IN_PROGRESS


# =============================================================================
# Finalization saga
# =============================================================================


class SagaStep(str, Enum):
    """Ordered finalization steps."""

    SYNC_PATIENT = "sync_patient"
    CREATE_MEDICAL_RECORD = "create_medical_record"
    COMPLETE_CONSULTATION = "complete_consultation"
    UPDATE_EXTERNAL_STATUS = "update_external_status"


class StepStatus(str, Enum):
    SUCCEEDED = "succeeded"
    ALREADY_DONE = "already_done"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class StepOutcome:
    step: SagaStep
    status: StepStatus
    detail: str | None = None


@dataclass
class FinalizationResult:
    """Outcome of finalize(): durable unless steps 1-3 raised."""

    consultation: Consultation
    medical_record: MedicalRecord
    patient: LocalPatient | None
    steps: list[StepOutcome] = field(default_factory=list)
    warning: PartialFinalizationError | None = None

    @property
    def external_status_synced(self) -> bool:
        return any(
            s.step == SagaStep.UPDATE_EXTERNAL_STATUS and s.status in (StepStatus.SUCCEEDED, StepStatus.ALREADY_DONE)
            for s in self.steps
        )

    def outcome(self, step: SagaStep) -> StepOutcome | None:
        return next((s for s in self.steps if s.step == step), None)


# =============================================================================
# Result DTOs
# =============================================================================


@dataclass(frozen=True)
class StartConsultationResult:
    consultation: Consultation
    identity: IdentityMatch
    identity_error: str | None = None


@dataclass(frozen=True)
class AppointmentWithIdentity:
    appointment: ExternalAppointment
    identity: IdentityMatch


@dataclass(frozen=True)
class ReconciliationReport:
    attempted: int = 0
    synced: int = 0
    failed: int = 0


@dataclass(frozen=True)
class ConsultationStats:
    """Dashboard counters. ``today`` counts consultations created since local midnight."""

    today: int = 0
    waiting: int = 0
    in_progress: int = 0
    completed: int = 0
    cancelled: int = 0


@dataclass(frozen=True)
class MedicalHistory:
    """Everything known about a CPF: registry record, local patient and records."""

    cpf: str
    customer: CentralCustomer | None
    patient: LocalPatient | None
    records: list[MedicalRecord] = field(default_factory=list)
    registry_error: str | None = None

    @property
    def total_consultations(self) -> int:
        return len(self.records)

    @property
    def last_consultation_date(self) -> date | None:
        return self.records[0].consultation_date if self.records else None
