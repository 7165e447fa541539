"""Appointments table model using SQLAlchemy Core."""

from sqlalchemy import (
    DDL,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    Uuid,
    event,
)

from medix.models.base import audit_columns, id_column, metadata

appointments = Table(
    "appointments",
    metadata,
    id_column(),
    Column(
        "doctor_id",
        Uuid,
        ForeignKey("doctors.id", ondelete="RESTRICT"),
        nullable=False,
    ),
    Column(
        "patient_id",
        Uuid,
        ForeignKey("patients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    ),
    # Time range, half-open [start, end)
    Column("appointment_start_time", DateTime(timezone=True), nullable=False),
    Column("appointment_end_time", DateTime(timezone=True), nullable=False),
    Column("duration_minutes", Integer, nullable=False),
    # Lifecycle
    Column(
        "status_code",
        String(30),
        nullable=False,
        server_default="BeforeAppointment",
        default="BeforeAppointment",
    ),
    Column("payment_status_code", String(20), nullable=False, server_default="Unpaid", default="Unpaid"),
    Column("payment_method_code", String(20)),
    # Money
    Column("consultation_fee", Numeric(14, 2), nullable=False),
    Column("total_amount", Numeric(14, 2), nullable=False),
    Column("refund_amount", Numeric(14, 2)),
    # Ledger entry that paid for this appointment (no FK, ledger is append-only)
    Column("transaction_id", Uuid),
    # Clinical
    Column("chief_complaint", Text),
    Column("notes", Text),
    *audit_columns(),
    Column("cancelled_at", DateTime(timezone=True)),
    CheckConstraint(
        "appointment_end_time > appointment_start_time",
        name="time_range",
    ),
    CheckConstraint(
        "status_code IN ('BeforeAppointment', 'OnProgressing', 'Completed', "
        "'CancelledByPatient', 'CancelledByDoctor', 'NoShow', 'MissedByDoctor', "
        "'MissedByPatient')",
        name="status_code",
    ),
    CheckConstraint(
        "payment_status_code IN ('Unpaid', 'Paid', 'Refunded', 'Completed')",
        name="payment_status_code",
    ),
    Index(
        "idx_appointments_doctor_time",
        "doctor_id",
        "appointment_start_time",
        "appointment_end_time",
    ),
)

# PostgreSQL backstop for the no-double-booking rule: two slot-holding
# appointments of one doctor may not have intersecting [start, end) ranges.
OVERLAP_EXCLUSION_SQL = (
    "ALTER TABLE appointments ADD CONSTRAINT appointments_no_overlap "
    "EXCLUDE USING gist ("
    "doctor_id WITH =, "
    "tstzrange(appointment_start_time, appointment_end_time, '[)') WITH &&"
    ") WHERE (status_code NOT IN ('CancelledByPatient', 'CancelledByDoctor', "
    "'NoShow', 'MissedByDoctor', 'MissedByPatient'))"
)

event.listen(
    appointments,
    "after_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    appointments,
    "after_create",
    DDL(OVERLAP_EXCLUSION_SQL).execute_if(dialect="postgresql"),
)
