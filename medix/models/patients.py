"""Patient model definition using SQLAlchemy Core."""

from sqlalchemy import (
    Column,
    Date,
    ForeignKey,
    String,
    Table,
    Uuid,
)

from medix.models.base import audit_columns, id_column, metadata

patients = Table(
    "patients",
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
    Column("date_of_birth", Date),
    Column("gender", String(20)),
    *audit_columns(),
)
