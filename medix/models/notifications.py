"""Notification history and device push tokens."""

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    Uuid,
    func,
    true,
)

from medix.models.base import audit_columns, id_column, metadata

notifications = Table(
    "notifications",
    metadata,
    id_column(),
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("title", Text, nullable=False),
    Column("body", Text, nullable=False),
    Column("notification_type", String(50), nullable=False),
    Column("priority", String(20), nullable=False, server_default="normal", default="normal"),
    Column("data", JSON),
    Column("status", String(20), nullable=False, server_default="pending", default="pending"),
    Column("sent_at", DateTime(timezone=True)),
    Column("read_at", DateTime(timezone=True)),
    Column("failure_reason", Text),
    *audit_columns(),
    CheckConstraint(
        "notification_type IN ('appointment_confirmation', 'appointment_cancelled', "
        "'appointment_status', 'schedule_update', 'other')",
        name="notification_type",
    ),
    CheckConstraint(
        "priority IN ('low', 'normal', 'high', 'urgent')",
        name="priority",
    ),
    CheckConstraint(
        "status IN ('pending', 'sent', 'delivered', 'failed', 'read')",
        name="status",
    ),
    Index("idx_notifications_user_status", "user_id", "status"),
)

push_tokens = Table(
    "push_tokens",
    metadata,
    id_column(),
    Column(
        "user_id",
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("fcm_token", Text, nullable=False, unique=True),
    Column("platform", String(10), nullable=False),
    Column("is_active", Boolean, nullable=False, server_default=true(), default=True),
    Column("last_used_at", DateTime(timezone=True)),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint(
        "platform IN ('android', 'ios', 'web')",
        name="platform",
    ),
)
