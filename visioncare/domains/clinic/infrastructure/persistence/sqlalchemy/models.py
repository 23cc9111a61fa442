"""
Clinic SQLAlchemy Models

Tables of the local store: patients, consultations and medical records.
"""

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID

from visioncare.database.base import Base, TimestampMixin


class LocalPatientModel(Base, TimestampMixin):
    """SQLAlchemy model for LocalPatient entity."""

    __tablename__ = "patients"

    id = Column(UUID(as_uuid=False), primary_key=True)
    cpf = Column(String(11), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=True, index=True)
    email = Column(String(255), nullable=True)
    birth_date = Column(Date, nullable=True)
    address = Column(JSONB, nullable=False, default=dict)
    insurance_info = Column(JSONB, nullable=False, default=dict)
    emergency_contact = Column(JSONB, nullable=False, default=dict)


class ConsultationModel(Base):
    """SQLAlchemy model for Consultation entity."""

    __tablename__ = "consultations"
    __table_args__ = (
        Index("ix_consultations_status_created_at", "status", "created_at"),
        Index("ix_consultations_external_sync", "status", "external_sync_status"),
    )

    id = Column(UUID(as_uuid=False), primary_key=True)
    appointment_id = Column(String(64), nullable=True, index=True)
    patient_id = Column(UUID(as_uuid=False), ForeignKey("patients.id"), nullable=True, index=True)
    doctor_id = Column(String(64), nullable=True, index=True)
    status = Column(String(20), nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)

    physical_exam = Column(JSONB, nullable=False, default=dict)
    chief_complaint = Column(Text, nullable=True)
    anamnesis = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    diagnosis = Column(Text, nullable=True)
    prescription = Column(Text, nullable=True)
    follow_up_date = Column(Date, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    # Denormalized identity frozen at creation
    patient_data = Column(JSONB, nullable=False, default=dict)

    medical_record_id = Column(UUID(as_uuid=False), nullable=True)
    external_sync_status = Column(String(20), nullable=False, default="not_applicable")
    external_sync_error = Column(Text, nullable=True)
    external_sync_attempts = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class MedicalRecordModel(Base):
    """SQLAlchemy model for MedicalRecord entity (insert-only)."""

    __tablename__ = "medical_records"

    id = Column(UUID(as_uuid=False), primary_key=True)
    consultation_id = Column(UUID(as_uuid=False), ForeignKey("consultations.id"), unique=True, nullable=False)
    patient_id = Column(UUID(as_uuid=False), ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id = Column(String(64), nullable=True)
    consultation_date = Column(Date, nullable=False)
    chief_complaint = Column(Text, nullable=True)
    anamnesis = Column(Text, nullable=True)
    physical_exam = Column(JSONB, nullable=False, default=dict)
    diagnosis = Column(Text, nullable=True)
    prescription = Column(Text, nullable=True)
    follow_up_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
