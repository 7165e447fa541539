"""create doctor_schedules and doctor_schedule_overrides tables

Revision ID: 002
Revises: 001
Create Date: 2026-10-05 09:30:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create recurring schedule and date override tables."""
    op.create_table(
        "doctor_schedules",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("doctor_id", sa.Uuid(), nullable=False),
        sa.Column("day_of_week", sa.SmallInteger(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("is_available", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False
        ),
        sa.PrimaryKeyConstraint("id", name="pk_doctor_schedules"),
        sa.ForeignKeyConstraint(
            ["doctor_id"],
            ["doctors.id"],
            ondelete="CASCADE",
            name="fk_doctor_schedules_doctor_id_doctors",
        ),
        sa.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_doctor_schedules_day_of_week"),
        sa.CheckConstraint("start_time < end_time", name="ck_doctor_schedules_time_range"),
    )
    op.create_index(
        "idx_doctor_schedules_doctor_day", "doctor_schedules", ["doctor_id", "day_of_week"]
    )

    op.create_table(
        "doctor_schedule_overrides",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("doctor_id", sa.Uuid(), nullable=False),
        sa.Column("override_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False),
        sa.Column("override_type", sa.String(20), server_default="block", nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False
        ),
        sa.PrimaryKeyConstraint("id", name="pk_doctor_schedule_overrides"),
        sa.ForeignKeyConstraint(
            ["doctor_id"],
            ["doctors.id"],
            ondelete="CASCADE",
            name="fk_doctor_schedule_overrides_doctor_id_doctors",
        ),
        sa.CheckConstraint("start_time < end_time", name="ck_doctor_schedule_overrides_time_range"),
        sa.CheckConstraint(
            "override_type IN ('block', 'extra', 'vacation')",
            name="ck_doctor_schedule_overrides_override_type",
        ),
    )
    op.create_index(
        "idx_schedule_overrides_doctor_date",
        "doctor_schedule_overrides",
        ["doctor_id", "override_date"],
    )


def downgrade() -> None:
    """Drop schedule tables."""
    op.drop_index("idx_schedule_overrides_doctor_date", table_name="doctor_schedule_overrides")
    op.drop_table("doctor_schedule_overrides")
    op.drop_index("idx_doctor_schedules_doctor_day", table_name="doctor_schedules")
    op.drop_table("doctor_schedules")
