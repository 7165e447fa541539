"""Appointment schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from medix.schemas.common import Money, UTCDateTime


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    BEFORE_APPOINTMENT = "BeforeAppointment"
    ON_PROGRESSING = "OnProgressing"
    COMPLETED = "Completed"
    CANCELLED_BY_PATIENT = "CancelledByPatient"
    CANCELLED_BY_DOCTOR = "CancelledByDoctor"
    NO_SHOW = "NoShow"
    MISSED_BY_DOCTOR = "MissedByDoctor"
    MISSED_BY_PATIENT = "MissedByPatient"


class PaymentStatus(str, Enum):
    """Payment status enumeration."""

    UNPAID = "Unpaid"
    PAID = "Paid"
    REFUNDED = "Refunded"
    COMPLETED = "Completed"


class PaymentMethod(str, Enum):
    """Payment method enumeration."""

    WALLET = "Wallet"


# Statuses that give the doctor's time back.
SLOT_RELEASING_STATUSES = frozenset(
    {
        AppointmentStatus.CANCELLED_BY_PATIENT,
        AppointmentStatus.CANCELLED_BY_DOCTOR,
        AppointmentStatus.NO_SHOW,
        AppointmentStatus.MISSED_BY_DOCTOR,
        AppointmentStatus.MISSED_BY_PATIENT,
    }
)

# Statuses a patient may still cancel from.
PATIENT_CANCELLABLE_STATUSES = frozenset(
    {AppointmentStatus.BEFORE_APPOINTMENT, AppointmentStatus.ON_PROGRESSING}
)

# Doctor-side outcomes that refund the patient in full.
DOCTOR_FAULT_STATUSES = frozenset(
    {AppointmentStatus.CANCELLED_BY_DOCTOR, AppointmentStatus.MISSED_BY_DOCTOR}
)


class AppointmentBookingRequest(BaseModel):
    """Schema for booking an appointment paid from the patient's wallet."""

    doctor_id: UUID
    appointment_start_time: UTCDateTime
    appointment_end_time: UTCDateTime
    total_amount: Decimal = Field(..., gt=0, max_digits=14, decimal_places=2)
    chief_complaint: str | None = Field(None, max_length=1000)

    @model_validator(mode="after")
    def validate_time_range(self) -> "AppointmentBookingRequest":
        """Validate end time is after start time."""
        if self.appointment_end_time <= self.appointment_start_time:
            raise ValueError("appointment_end_time must be after appointment_start_time")
        return self


class AppointmentUpdate(BaseModel):
    """Schema for updating an existing appointment."""

    appointment_start_time: UTCDateTime | None = None
    appointment_end_time: UTCDateTime | None = None
    chief_complaint: str | None = Field(None, max_length=1000)
    notes: str | None = Field(None, max_length=1000)


class AppointmentStatusUpdate(BaseModel):
    """Schema for updating appointment status."""

    status: AppointmentStatus
    notes: str | None = Field(None, max_length=1000)


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    doctor_id: UUID
    patient_id: UUID
    appointment_start_time: UTCDateTime
    appointment_end_time: UTCDateTime
    duration_minutes: int
    status_code: AppointmentStatus
    payment_status_code: PaymentStatus
    payment_method_code: PaymentMethod | None = None
    consultation_fee: Money
    total_amount: Money
    refund_amount: Money | None = None
    transaction_id: UUID | None = None
    chief_complaint: str | None = None
    notes: str | None = None
    created_at: UTCDateTime
    updated_at: UTCDateTime
    cancelled_at: UTCDateTime | None = None

    model_config = {"from_attributes": True}


class DoctorBusyResponse(BaseModel):
    """Result of a busy check for a doctor and time range."""

    doctor_id: UUID
    start: datetime
    end: datetime
    busy: bool
