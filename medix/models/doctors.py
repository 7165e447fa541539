"""Doctor model definition using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    Uuid,
    true,
)

from medix.models.base import audit_columns, id_column, metadata

doctors = Table(
    "doctors",
    metadata,
    id_column(),
    Column(
        "user_id",
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    ),
    # Practice information
    Column("specialization", String(200), index=True),
    Column("bio", Text),
    Column("consultation_fee", Numeric(14, 2)),
    Column(
        "consultation_duration_minutes",
        Integer,
        nullable=False,
        server_default="30",
        default=30,
    ),
    Column("is_active", Boolean, nullable=False, server_default=true(), default=True),
    *audit_columns(),
)
