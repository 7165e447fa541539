"""create appointments table with overlap exclusion

Revision ID: 004
Revises: 003
Create Date: 2026-10-05 10:30:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

RELEASING_STATUSES = (
    "'CancelledByPatient', 'CancelledByDoctor', 'NoShow', 'MissedByDoctor', 'MissedByPatient'"
)


def upgrade() -> None:
    """Create appointments table and the per-doctor no-overlap constraint."""
    op.create_table(
        "appointments",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("doctor_id", sa.Uuid(), nullable=False),
        sa.Column("patient_id", sa.Uuid(), nullable=False),
        sa.Column("appointment_start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("appointment_end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column(
            "status_code", sa.String(30), server_default="BeforeAppointment", nullable=False
        ),
        sa.Column("payment_status_code", sa.String(20), server_default="Unpaid", nullable=False),
        sa.Column("payment_method_code", sa.String(20), nullable=True),
        sa.Column("consultation_fee", sa.Numeric(14, 2), nullable=False),
        sa.Column("total_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("refund_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("transaction_id", sa.Uuid(), nullable=True),
        sa.Column("chief_complaint", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False
        ),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_appointments"),
        sa.ForeignKeyConstraint(
            ["doctor_id"],
            ["doctors.id"],
            ondelete="RESTRICT",
            name="fk_appointments_doctor_id_doctors",
        ),
        sa.ForeignKeyConstraint(
            ["patient_id"],
            ["patients.id"],
            ondelete="RESTRICT",
            name="fk_appointments_patient_id_patients",
        ),
        sa.CheckConstraint(
            "appointment_end_time > appointment_start_time", name="ck_appointments_time_range"
        ),
        sa.CheckConstraint(
            "status_code IN ('BeforeAppointment', 'OnProgressing', 'Completed', "
            f"{RELEASING_STATUSES})",
            name="ck_appointments_status_code",
        ),
        sa.CheckConstraint(
            "payment_status_code IN ('Unpaid', 'Paid', 'Refunded', 'Completed')",
            name="ck_appointments_payment_status_code",
        ),
    )
    op.create_index("ix_appointments_patient_id", "appointments", ["patient_id"])
    op.create_index(
        "idx_appointments_doctor_time",
        "appointments",
        ["doctor_id", "appointment_start_time", "appointment_end_time"],
    )

    # Two slot-holding appointments of one doctor may not intersect.
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
    op.execute(
        f"""
        ALTER TABLE appointments ADD CONSTRAINT appointments_no_overlap
        EXCLUDE USING gist (
            doctor_id WITH =,
            tstzrange(appointment_start_time, appointment_end_time, '[)') WITH &&
        ) WHERE (status_code NOT IN ({RELEASING_STATUSES}))
        """
    )


def downgrade() -> None:
    """Drop appointments table."""
    op.execute("ALTER TABLE appointments DROP CONSTRAINT IF EXISTS appointments_no_overlap")
    op.drop_index("idx_appointments_doctor_time", table_name="appointments")
    op.drop_index("ix_appointments_patient_id", table_name="appointments")
    op.drop_table("appointments")
