"""User model definition using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    String,
    Table,
    Text,
    true,
)

from medix.models.base import audit_columns, id_column, metadata

users = Table(
    "users",
    metadata,
    id_column(),
    Column("email", Text, nullable=False, unique=True, index=True),
    Column("full_name", Text),
    Column("phone", String(20)),
    Column("role", String(20), nullable=False, server_default="patient", default="patient"),
    Column("is_active", Boolean, nullable=False, server_default=true(), default=True),
    *audit_columns(),
    CheckConstraint(
        "role IN ('patient', 'doctor', 'manager', 'admin')",
        name="role",
    ),
)
