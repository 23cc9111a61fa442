"""clinic_core

Revision ID: 001_clinic_core
Revises:
Create Date: 2026-10-19

Creates the local store of the clinic service:
- patients: local patient registry, unique by CPF
- consultations: consultation state, clinical fields and the external
  status write-back bookkeeping used by the reconciliation job
- medical_records: immutable record, one per finalized consultation
"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_clinic_core"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create patients, consultations and medical_records."""

    op.create_table(
        "patients",
        sa.Column("id", sa.UUID(as_uuid=False), nullable=False),
        sa.Column("cpf", sa.String(11), nullable=False, comment="CPF, digits only"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("birth_date", sa.Date(), nullable=True),
        sa.Column("address", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("insurance_info", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("emergency_contact", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_patients_cpf", "patients", ["cpf"], unique=True)
    op.create_index("ix_patients_phone", "patients", ["phone"])

    op.create_table(
        "consultations",
        sa.Column("id", sa.UUID(as_uuid=False), nullable=False),
        sa.Column("appointment_id", sa.String(64), nullable=True, comment="Appointment id in the external schedule"),
        sa.Column("patient_id", sa.UUID(as_uuid=False), nullable=True),
        sa.Column("doctor_id", sa.String(64), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "physical_exam",
            JSONB(),
            nullable=False,
            server_default=sa.text("'{\"schema_version\": 1}'::jsonb"),
            comment="Versioned ophthalmic exam",
        ),
        sa.Column("chief_complaint", sa.Text(), nullable=True),
        sa.Column("anamnesis", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("diagnosis", sa.Text(), nullable=True),
        sa.Column("prescription", sa.Text(), nullable=True),
        sa.Column("follow_up_date", sa.Date(), nullable=True),
        sa.Column(
            "patient_data",
            JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
            comment="Patient identity snapshot taken when the consultation started",
        ),
        sa.Column("medical_record_id", sa.UUID(as_uuid=False), nullable=True),
        sa.Column("external_sync_status", sa.String(20), nullable=False, server_default="not_applicable"),
        sa.Column("external_sync_error", sa.Text(), nullable=True),
        sa.Column("external_sync_attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["patient_id"], ["patients.id"]),
    )
    op.create_index("ix_consultations_appointment_id", "consultations", ["appointment_id"])
    op.create_index("ix_consultations_patient_id", "consultations", ["patient_id"])
    op.create_index("ix_consultations_status_created_at", "consultations", ["status", "created_at"])
    op.create_index("ix_consultations_external_sync", "consultations", ["status", "external_sync_status"])

    op.create_table(
        "medical_records",
        sa.Column("id", sa.UUID(as_uuid=False), nullable=False),
        sa.Column("consultation_id", sa.UUID(as_uuid=False), nullable=False),
        sa.Column("patient_id", sa.UUID(as_uuid=False), nullable=False),
        sa.Column("doctor_id", sa.String(64), nullable=True),
        sa.Column("consultation_date", sa.Date(), nullable=False),
        sa.Column("chief_complaint", sa.Text(), nullable=True),
        sa.Column("anamnesis", sa.Text(), nullable=True),
        sa.Column("physical_exam", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("diagnosis", sa.Text(), nullable=True),
        sa.Column("prescription", sa.Text(), nullable=True),
        sa.Column("follow_up_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["consultation_id"], ["consultations.id"]),
        sa.ForeignKeyConstraint(["patient_id"], ["patients.id"]),
        sa.UniqueConstraint("consultation_id", name="uq_medical_records_consultation_id"),
    )
    op.create_index("ix_medical_records_patient_id", "medical_records", ["patient_id"])


def downgrade() -> None:
    """Drop the clinic tables."""
    op.drop_index("ix_medical_records_patient_id", table_name="medical_records")
    op.drop_table("medical_records")

    op.drop_index("ix_consultations_external_sync", table_name="consultations")
    op.drop_index("ix_consultations_status_created_at", table_name="consultations")
    op.drop_index("ix_consultations_patient_id", table_name="consultations")
    op.drop_index("ix_consultations_appointment_id", table_name="consultations")
    op.drop_table("consultations")

    op.drop_index("ix_patients_phone", table_name="patients")
    op.drop_index("ix_patients_cpf", table_name="patients")
    op.drop_table("patients")
