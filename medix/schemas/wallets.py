"""Wallet schemas."""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel

from medix.schemas.common import Money, UTCDateTime


class WalletTransactionType(str, Enum):
    """Ledger entry type."""

    APPOINTMENT_PAYMENT = "AppointmentPayment"
    APPOINTMENT_REFUND = "AppointmentRefund"
    DEPOSIT = "Deposit"
    WITHDRAWAL = "Withdrawal"


class WalletResponse(BaseModel):
    """Schema for wallet response."""

    id: UUID
    user_id: UUID
    balance: Money
    currency: str
    is_active: bool
    created_at: UTCDateTime
    updated_at: UTCDateTime

    model_config = {"from_attributes": True}


class WalletTransactionResponse(BaseModel):
    """Schema for one ledger entry."""

    id: UUID
    wallet_id: UUID
    amount: Money
    balance_before: Money
    balance_after: Money
    transaction_type_code: WalletTransactionType
    status: str
    description: str | None = None
    related_appointment_id: UUID | None = None
    created_at: UTCDateTime

    model_config = {"from_attributes": True}


class WalletTransactionListResponse(BaseModel):
    """Paginated ledger entries."""

    total: int
    page: int
    page_size: int
    items: list[WalletTransactionResponse]
