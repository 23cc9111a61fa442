"""
Clinic API Schemas

Pydantic schemas for API request/response validation.
"""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..application.dto import (
    AppointmentWithIdentity,
    ConsultationStats,
    FinalizationResult,
    IdentityMatch,
    IdentityQuery,
    MedicalHistory,
    RegistrationDetails,
    StartConsultationResult,
)
from ..domain.entities import CentralCustomer, Consultation, ExternalAppointment, LocalPatient, MedicalRecord
from ..domain.value_objects import ConsultationStatus, MatchConfidence, PatientSnapshot

# =============================================================================
# Identity
# =============================================================================


class IdentityQueryRequest(BaseModel):
    """Identity resolution request schema."""

    name: str = Field(..., min_length=1)
    phone: str | None = None
    cpf: str | None = None
    birth_date: str | None = None
    email: str | None = None
    provision: bool = Field(default=True, description="Create a quick registration when nothing matches")

    def to_query(self) -> IdentityQuery:
        return IdentityQuery(
            name=self.name,
            phone=self.phone,
            cpf=self.cpf,
            birth_date=self.birth_date,
            email=self.email,
        )


class AddressSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    street: str | None = None
    number: str | None = None
    complement: str | None = None
    neighborhood: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None


class RegistrationRequest(BaseModel):
    """Manual registration confirmation schema."""

    cpf: str | None = None
    rg: str | None = None
    email: str | None = None
    birth_date: str | None = None
    address: AddressSchema | None = None

    def to_details(self) -> RegistrationDetails:
        return RegistrationDetails(
            cpf=self.cpf,
            rg=self.rg,
            email=self.email,
            birth_date=self.birth_date,
            address=self.address.model_dump(exclude_none=True) if self.address else None,
        )


class CentralCustomerResponse(BaseModel):
    """Central registry customer response schema."""

    id: str
    name: str
    phone: str | None = None
    cpf: str | None = None
    code: str | None = None
    rg: str | None = None
    email: str | None = None
    birth_date: date | None = None
    address: AddressSchema | None = None
    registration_complete: bool
    active: bool

    @classmethod
    def from_entity(cls, customer: CentralCustomer) -> "CentralCustomerResponse":
        address = None
        if customer.address is not None:
            address = AddressSchema(**vars(customer.address))
        return cls(
            id=customer.id,
            name=customer.name,
            phone=customer.phone,
            cpf=customer.cpf,
            code=customer.code,
            rg=customer.rg,
            email=customer.email,
            birth_date=customer.birth_date,
            address=address,
            registration_complete=customer.registration_complete,
            active=customer.active,
        )


class IdentityMatchResponse(BaseModel):
    """Identity resolution response schema."""

    confidence: MatchConfidence
    provisioned: bool
    requires_confirmation: bool
    customer: CentralCustomerResponse | None = None

    @classmethod
    def from_match(cls, match: IdentityMatch) -> "IdentityMatchResponse":
        return cls(
            confidence=match.confidence,
            provisioned=match.provisioned,
            requires_confirmation=match.requires_confirmation,
            customer=CentralCustomerResponse.from_entity(match.record) if match.record else None,
        )


# =============================================================================
# Appointments
# =============================================================================


class AppointmentResponse(BaseModel):
    """External appointment response schema."""

    id: str
    patient_name: str
    phone: str | None = None
    email: str | None = None
    cpf: str | None = None
    birth_date: str | None = None
    appointment_date: date | None = None
    time: str | None = None
    status: str | None = None
    doctor_id: str | None = None
    doctor_name: str | None = None

    @classmethod
    def from_entity(cls, appointment: ExternalAppointment) -> "AppointmentResponse":
        status = appointment.status
        return cls(
            id=appointment.id,
            patient_name=appointment.patient_name,
            phone=appointment.phone,
            email=appointment.email,
            cpf=appointment.cpf,
            birth_date=appointment.birth_date,
            appointment_date=appointment.appointment_date,
            time=appointment.time,
            status=getattr(status, "value", status),
            doctor_id=appointment.doctor.id if appointment.doctor else None,
            doctor_name=appointment.doctor.name if appointment.doctor else None,
        )


class AppointmentWithIdentityResponse(BaseModel):
    appointment: AppointmentResponse
    identity: IdentityMatchResponse

    @classmethod
    def from_dto(cls, item: AppointmentWithIdentity) -> "AppointmentWithIdentityResponse":
        return cls(
            appointment=AppointmentResponse.from_entity(item.appointment),
            identity=IdentityMatchResponse.from_match(item.identity),
        )


# =============================================================================
# Consultations
# =============================================================================


class PatientSnapshotSchema(BaseModel):
    """Patient identity frozen into a consultation."""

    name: str
    cpf: str | None = None
    phone: str | None = None
    birth_date: str | None = None
    email: str | None = None
    central_customer_id: str | None = None
    identity_confidence: MatchConfidence = MatchConfidence.NONE

    def to_snapshot(self) -> PatientSnapshot:
        return PatientSnapshot(**self.model_dump())

    @classmethod
    def from_snapshot(cls, snapshot: PatientSnapshot) -> "PatientSnapshotSchema":
        return cls(**snapshot.to_dict())


class StartConsultationRequestSchema(BaseModel):
    appointment_id: str
    consultation_id: str | None = Field(default=None, description="Client-generated id; makes the call retry-safe")
    doctor_id: str | None = None
    initial_status: ConsultationStatus = ConsultationStatus.IN_PROGRESS


class CreateConsultationRequest(BaseModel):
    """Consultation creation schema (walk-in or explicit snapshot)."""

    patient: PatientSnapshotSchema
    appointment_id: str | None = None
    consultation_id: str | None = None
    doctor_id: str | None = None
    patient_id: str | None = None
    status: ConsultationStatus = ConsultationStatus.IN_PROGRESS


class ConsultationUpdateRequest(BaseModel):
    """Partial consultation edit; only the fields sent are written."""

    model_config = ConfigDict(extra="forbid")

    chief_complaint: str | None = None
    anamnesis: str | None = None
    notes: str | None = None
    diagnosis: str | None = None
    prescription: str | None = None
    follow_up_date: date | None = None
    doctor_ref: str | None = None
    physical_exam: dict[str, Any] | None = None
    patient_snapshot: dict[str, Any] | None = None

    def to_changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class FinalizeRequest(BaseModel):
    clinical_fields: ConsultationUpdateRequest | None = None


class CancelConsultationRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class ConsultationResponse(BaseModel):
    """Consultation response schema."""

    id: str
    status: ConsultationStatus
    appointment_id: str | None = None
    patient_id: str | None = None
    doctor_id: str | None = None
    started_at: datetime
    completed_at: datetime | None = None
    chief_complaint: str | None = None
    anamnesis: str | None = None
    notes: str | None = None
    diagnosis: str | None = None
    prescription: str | None = None
    follow_up_date: date | None = None
    physical_exam: dict[str, Any]
    patient: PatientSnapshotSchema
    cancellation_reason: str | None = None
    medical_record_id: str | None = None
    external_sync_status: str
    external_sync_error: str | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, consultation: Consultation) -> "ConsultationResponse":
        return cls(
            id=consultation.id or "",
            status=consultation.status,
            appointment_id=consultation.appointment_ref,
            patient_id=consultation.patient_ref,
            doctor_id=consultation.doctor_ref,
            started_at=consultation.started_at,
            completed_at=consultation.completed_at,
            chief_complaint=consultation.chief_complaint,
            anamnesis=consultation.anamnesis,
            notes=consultation.notes,
            diagnosis=consultation.diagnosis,
            prescription=consultation.prescription,
            follow_up_date=consultation.follow_up_date,
            physical_exam=consultation.physical_exam.to_storage(),
            patient=PatientSnapshotSchema.from_snapshot(consultation.patient_snapshot),
            cancellation_reason=consultation.cancellation_reason,
            medical_record_id=consultation.medical_record_ref,
            external_sync_status=consultation.external_sync_status.value,
            external_sync_error=consultation.external_sync_error,
            updated_at=consultation.updated_at,
        )


class StartConsultationResponse(BaseModel):
    consultation: ConsultationResponse
    identity: IdentityMatchResponse
    identity_error: str | None = None

    @classmethod
    def from_result(cls, result: StartConsultationResult) -> "StartConsultationResponse":
        return cls(
            consultation=ConsultationResponse.from_entity(result.consultation),
            identity=IdentityMatchResponse.from_match(result.identity),
            identity_error=result.identity_error,
        )


class StepOutcomeResponse(BaseModel):
    step: str
    status: str
    detail: str | None = None


class FinalizationResponse(BaseModel):
    """Finalization saga response schema."""

    consultation: ConsultationResponse
    medical_record_id: str
    patient_id: str | None = None
    steps: list[StepOutcomeResponse]
    external_status_synced: bool
    warning: dict[str, Any] | None = None

    @classmethod
    def from_result(cls, result: FinalizationResult) -> "FinalizationResponse":
        return cls(
            consultation=ConsultationResponse.from_entity(result.consultation),
            medical_record_id=result.medical_record.id,
            patient_id=result.patient.id if result.patient else result.consultation.patient_ref,
            steps=[
                StepOutcomeResponse(step=s.step.value, status=s.status.value, detail=s.detail) for s in result.steps
            ],
            external_status_synced=result.external_status_synced,
            warning=result.warning.to_dict() if result.warning else None,
        )


class ConsultationStatsResponse(BaseModel):
    today: int
    waiting: int
    in_progress: int
    completed: int
    cancelled: int

    @classmethod
    def from_stats(cls, stats: ConsultationStats) -> "ConsultationStatsResponse":
        return cls(**vars(stats))


# =============================================================================
# Medical history
# =============================================================================


class LocalPatientResponse(BaseModel):
    id: str
    cpf: str
    name: str
    phone: str | None = None
    email: str | None = None
    birth_date: date | None = None

    @classmethod
    def from_entity(cls, patient: LocalPatient) -> "LocalPatientResponse":
        return cls(
            id=patient.id or "",
            cpf=patient.cpf,
            name=patient.name,
            phone=patient.phone,
            email=patient.email,
            birth_date=patient.birth_date,
        )


class MedicalRecordResponse(BaseModel):
    """Medical record response schema."""

    id: str
    consultation_id: str
    patient_id: str
    doctor_id: str | None = None
    consultation_date: date
    chief_complaint: str | None = None
    anamnesis: str | None = None
    physical_exam: dict[str, Any]
    diagnosis: str | None = None
    prescription: str | None = None
    follow_up_date: date | None = None
    created_at: datetime

    @classmethod
    def from_entity(cls, record: MedicalRecord) -> "MedicalRecordResponse":
        return cls(
            id=record.id,
            consultation_id=record.consultation_id,
            patient_id=record.patient_id,
            doctor_id=record.doctor_id,
            consultation_date=record.consultation_date,
            chief_complaint=record.chief_complaint,
            anamnesis=record.anamnesis,
            physical_exam=record.physical_exam.to_storage(),
            diagnosis=record.diagnosis,
            prescription=record.prescription,
            follow_up_date=record.follow_up_date,
            created_at=record.created_at,
        )


class MedicalHistoryResponse(BaseModel):
    """Registry record, local patient and medical records of one CPF."""

    cpf: str
    customer: CentralCustomerResponse | None = None
    patient: LocalPatientResponse | None = None
    records: list[MedicalRecordResponse]
    total_consultations: int
    last_consultation_date: date | None = None
    registry_error: str | None = None

    @classmethod
    def from_history(cls, history: MedicalHistory) -> "MedicalHistoryResponse":
        return cls(
            cpf=history.cpf,
            customer=CentralCustomerResponse.from_entity(history.customer) if history.customer else None,
            patient=LocalPatientResponse.from_entity(history.patient) if history.patient else None,
            records=[MedicalRecordResponse.from_entity(r) for r in history.records],
            total_consultations=history.total_consultations,
            last_consultation_date=history.last_consultation_date,
            registry_error=history.registry_error,
        )
