"""consultation_listing

Revision ID: 002_consultation_listing
Revises: 001_clinic_core
Create Date: 2026-10-19

- consultations.cancellation_reason
- index on consultations.doctor_id for the per-doctor listing
"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002_consultation_listing"
down_revision: Union[str, Sequence[str], None] = "001_clinic_core"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column("consultations", sa.Column("cancellation_reason", sa.Text(), nullable=True))
    op.create_index("ix_consultations_doctor_id", "consultations", ["doctor_id"])


def downgrade() -> None:
    op.drop_index("ix_consultations_doctor_id", table_name="consultations")
    op.drop_column("consultations", "cancellation_reason")
