"""create wallets and wallet_transactions tables

Revision ID: 003
Revises: 002
Create Date: 2026-10-05 10:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create wallet and ledger tables."""
    op.create_table(
        "wallets",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("balance", sa.Numeric(14, 2), server_default="0", nullable=False),
        sa.Column("currency", sa.String(3), server_default="VND", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False
        ),
        sa.PrimaryKeyConstraint("id", name="pk_wallets"),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], ondelete="CASCADE", name="fk_wallets_user_id_users"
        ),
        sa.UniqueConstraint("user_id", name="uq_wallets_user_id"),
        sa.CheckConstraint("balance >= 0", name="ck_wallets_balance_non_negative"),
    )

    op.create_table(
        "wallet_transactions",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("wallet_id", sa.Uuid(), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("balance_before", sa.Numeric(14, 2), nullable=False),
        sa.Column("balance_after", sa.Numeric(14, 2), nullable=False),
        sa.Column("transaction_type_code", sa.String(30), nullable=False),
        sa.Column("status", sa.String(20), server_default="Completed", nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("related_appointment_id", sa.Uuid(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False
        ),
        sa.PrimaryKeyConstraint("id", name="pk_wallet_transactions"),
        sa.ForeignKeyConstraint(
            ["wallet_id"],
            ["wallets.id"],
            ondelete="CASCADE",
            name="fk_wallet_transactions_wallet_id_wallets",
        ),
        sa.CheckConstraint("amount > 0", name="ck_wallet_transactions_amount_positive"),
        sa.CheckConstraint(
            "transaction_type_code IN ('AppointmentPayment', 'AppointmentRefund', "
            "'Deposit', 'Withdrawal')",
            name="ck_wallet_transactions_transaction_type_code",
        ),
    )
    op.create_index(
        "ix_wallet_transactions_wallet_id", "wallet_transactions", ["wallet_id"]
    )
    op.create_index(
        "ix_wallet_transactions_related_appointment_id",
        "wallet_transactions",
        ["related_appointment_id"],
    )


def downgrade() -> None:
    """Drop wallet tables."""
    op.drop_index(
        "ix_wallet_transactions_related_appointment_id", table_name="wallet_transactions"
    )
    op.drop_index("ix_wallet_transactions_wallet_id", table_name="wallet_transactions")
    op.drop_table("wallet_transactions")
    op.drop_table("wallets")
