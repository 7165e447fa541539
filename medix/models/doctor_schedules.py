"""Recurring weekly shifts and per-date overrides of a doctor's schedule."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    SmallInteger,
    String,
    Table,
    Text,
    Time,
    Uuid,
    true,
)

from medix.models.base import audit_columns, id_column, metadata

# day_of_week: 0 = Sunday ... 6 = Saturday
doctor_schedules = Table(
    "doctor_schedules",
    metadata,
    id_column(),
    Column(
        "doctor_id",
        Uuid,
        ForeignKey("doctors.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("day_of_week", SmallInteger, nullable=False),
    Column("start_time", Time, nullable=False),
    Column("end_time", Time, nullable=False),
    Column("is_available", Boolean, nullable=False, server_default=true(), default=True),
    *audit_columns(),
    CheckConstraint("day_of_week BETWEEN 0 AND 6", name="day_of_week"),
    CheckConstraint("start_time < end_time", name="time_range"),
    Index("idx_doctor_schedules_doctor_day", "doctor_id", "day_of_week"),
)

doctor_schedule_overrides = Table(
    "doctor_schedule_overrides",
    metadata,
    id_column(),
    Column(
        "doctor_id",
        Uuid,
        ForeignKey("doctors.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("override_date", Date, nullable=False),
    Column("start_time", Time, nullable=False),
    Column("end_time", Time, nullable=False),
    Column("is_available", Boolean, nullable=False),
    Column("override_type", String(20), nullable=False, server_default="block", default="block"),
    Column("reason", Text),
    *audit_columns(),
    CheckConstraint("start_time < end_time", name="time_range"),
    CheckConstraint(
        "override_type IN ('block', 'extra', 'vacation')",
        name="override_type",
    ),
    Index("idx_schedule_overrides_doctor_date", "doctor_id", "override_date"),
)
