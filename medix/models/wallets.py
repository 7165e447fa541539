"""Wallet and wallet ledger tables using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Table,
    Text,
    Uuid,
    func,
    true,
)

from medix.models.base import audit_columns, id_column, metadata

wallets = Table(
    "wallets",
    metadata,
    id_column(),
    Column(
        "user_id",
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    ),
    Column("balance", Numeric(14, 2), nullable=False, server_default="0", default=0),
    Column("currency", String(3), nullable=False, server_default="VND", default="VND"),
    Column("is_active", Boolean, nullable=False, server_default=true(), default=True),
    *audit_columns(),
    CheckConstraint("balance >= 0", name="balance_non_negative"),
)

# Insert-only ledger; rows are never updated or deleted.
wallet_transactions = Table(
    "wallet_transactions",
    metadata,
    id_column(),
    Column(
        "wallet_id",
        Uuid,
        ForeignKey("wallets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("amount", Numeric(14, 2), nullable=False),
    Column("balance_before", Numeric(14, 2), nullable=False),
    Column("balance_after", Numeric(14, 2), nullable=False),
    Column("transaction_type_code", String(30), nullable=False),
    Column("status", String(20), nullable=False, server_default="Completed", default="Completed"),
    Column("description", Text),
    Column("related_appointment_id", Uuid, index=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint("amount > 0", name="amount_positive"),
    CheckConstraint(
        "transaction_type_code IN ('AppointmentPayment', 'AppointmentRefund', "
        "'Deposit', 'Withdrawal')",
        name="transaction_type_code",
    ),
)
