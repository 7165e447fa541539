"""
Booking transaction and patient cancellation.

A booking is one unit of work:

    lock doctor -> availability -> busy check -> funds check -> debit + ledger
    -> insert appointment -> commit

Any failure rolls everything back, so a patient is never charged for an
appointment that does not exist and no appointment exists without its payment.
Notifications go out only after the commit and cannot undo it.
"""

from datetime import UTC, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID, uuid4

import structlog
from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from medix.config import settings
from medix.core.exceptions import (
    BadRequestException,
    DoctorUnavailableException,
    ForbiddenException,
    InsufficientFundsException,
    PaymentException,
    SlotConflictException,
)
from medix.database import transaction
from medix.models.appointments import appointments
from medix.models.doctors import doctors
from medix.schemas.appointments import (
    PATIENT_CANCELLABLE_STATUSES,
    AppointmentBookingRequest,
    AppointmentStatus,
    PaymentMethod,
    PaymentStatus,
)
from medix.schemas.common import ensure_utc
from medix.schemas.wallets import WalletTransactionType
from medix.services.appointment_service import AppointmentService, duration_minutes
from medix.services.availability_service import AvailabilityService
from medix.services.doctor_service import DoctorService
from medix.services.notification_service import NotificationService
from medix.services.user_service import UserService
from medix.services.wallet_service import WalletService

logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")


def refund_ratio(value: float | None = None) -> Decimal:
    """
    Share of the paid amount returned on patient cancellation.

    Values above 1 are read as percentages (80 -> 0.80); the result is clamped
    to ``[0, 1]``.
    """
    ratio = Decimal(str(settings.patient_cancel_refund_percent if value is None else value))
    if ratio > 1:
        ratio = ratio / 100
    return min(max(ratio, Decimal(0)), Decimal(1))


class BookingService:
    """Service for booking and patient-side cancellation."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def create_appointment(
        self,
        patient_user_id: UUID,
        data: AppointmentBookingRequest,
    ) -> dict[str, Any]:
        """
        Book and pay for an appointment.

        Args:
            patient_user_id: User ID of the booking patient
            data: Doctor, time range and amount to charge

        Returns:
            The created appointment

        Raises:
            NotFoundException: If the doctor or patient profile does not exist
            DoctorUnavailableException: If the range is outside the doctor's schedule
            SlotConflictException: If the doctor is already booked in the range
            PaymentException: If the patient has no active wallet
            InsufficientFundsException: If the wallet cannot cover the amount
        """
        start = ensure_utc(data.appointment_start_time)
        end = ensure_utc(data.appointment_end_time)
        amount = data.total_amount.quantize(CENT, rounding=ROUND_HALF_UP)
        log = logger.bind(doctor_id=str(data.doctor_id), start=start.isoformat(), end=end.isoformat())

        patient = await UserService(self.db).get_patient_by_user_id(patient_user_id)

        try:
            async with transaction(self.db):
                doctor = await DoctorService(self.db).lock_doctor(data.doctor_id)
                if not doctor["is_active"]:
                    raise DoctorUnavailableException("Doctor is not accepting appointments")

                if settings.booking_requires_schedule and not await AvailabilityService(
                    self.db
                ).check_interval(data.doctor_id, start, end):
                    raise DoctorUnavailableException()

                if await AppointmentService(self.db).is_doctor_busy(data.doctor_id, start, end):
                    raise SlotConflictException()

                wallet_service = WalletService(self.db)
                wallet = await wallet_service.get_wallet_by_user_id(patient_user_id)
                if wallet is None or not wallet["is_active"]:
                    raise PaymentException("Patient has no active wallet")
                if Decimal(str(wallet["balance"])) < amount:
                    raise InsufficientFundsException()

                appointment_id = uuid4()
                ledger_entry = await wallet_service.debit_wallet(
                    wallet["id"],
                    amount,
                    WalletTransactionType.APPOINTMENT_PAYMENT,
                    description="Appointment payment",
                    related_appointment_id=appointment_id,
                )

                fee = doctor["consultation_fee"]
                try:
                    result = await self.db.execute(
                        insert(appointments)
                        .values(
                            id=appointment_id,
                            doctor_id=data.doctor_id,
                            patient_id=patient["id"],
                            appointment_start_time=start,
                            appointment_end_time=end,
                            duration_minutes=duration_minutes(start, end),
                            status_code=AppointmentStatus.ON_PROGRESSING.value,
                            payment_status_code=PaymentStatus.PAID.value,
                            payment_method_code=PaymentMethod.WALLET.value,
                            consultation_fee=fee if fee is not None else amount,
                            total_amount=amount,
                            transaction_id=ledger_entry["id"],
                            chief_complaint=data.chief_complaint,
                        )
                        .returning(appointments)
                    )
                except IntegrityError as e:
                    # Exclusion constraint caught an overlap the busy check missed.
                    raise SlotConflictException() from e
                appointment = dict(result.mappings().one())
        except BadRequestException as e:
            log.info("booking_rejected", reason=type(e).__name__)
            raise

        log.info(
            "appointment_booked",
            appointment_id=str(appointment["id"]),
            amount=str(amount),
            balance_after=str(ledger_entry["balance_after"]),
        )
        await self._notify_booking(patient_user_id, doctor["user_id"], appointment)
        return appointment

    async def _notify_booking(
        self,
        patient_user_id: UUID,
        doctor_user_id: UUID,
        appointment: dict[str, Any],
    ) -> None:
        try:
            await NotificationService.send_booking_confirmation(
                db=self.db,
                patient_user_id=patient_user_id,
                doctor_user_id=doctor_user_id,
                appointment=appointment,
            )
        except Exception as e:
            # Log error but don't fail the request
            await self.db.rollback()
            logger.warning(
                "failed_to_send_booking_notification",
                appointment_id=str(appointment["id"]),
                error=str(e),
            )

    async def cancel_by_patient(
        self,
        patient_user_id: UUID,
        appointment_id: UUID,
    ) -> dict[str, Any]:
        """
        Cancel a patient's own appointment and refund part of the payment.

        Raises:
            NotFoundException: If the appointment or patient profile does not exist
            ForbiddenException: If the appointment belongs to another patient
            BadRequestException: If the status or the cutoff forbids cancelling
        """
        patient = await UserService(self.db).get_patient_by_user_id(patient_user_id)
        appointment_service = AppointmentService(self.db)

        async with transaction(self.db):
            existing = await appointment_service.get_appointment(appointment_id, for_update=True)
            if existing["patient_id"] != patient["id"]:
                raise ForbiddenException("Access denied to this appointment")

            if AppointmentStatus(existing["status_code"]) not in PATIENT_CANCELLABLE_STATUSES:
                raise BadRequestException(
                    f"Appointment in status {existing['status_code']} cannot be cancelled"
                )

            now = datetime.now(UTC)
            cutoff = timedelta(hours=settings.cancellation_cutoff_hours)
            if ensure_utc(existing["appointment_start_time"]) - now < cutoff:
                raise BadRequestException(
                    f"Appointments can only be cancelled at least "
                    f"{settings.cancellation_cutoff_hours} hours in advance"
                )

            values: dict[str, Any] = {
                "status_code": AppointmentStatus.CANCELLED_BY_PATIENT.value,
                "cancelled_at": now,
            }
            if existing["payment_status_code"] == PaymentStatus.PAID.value:
                refund = (Decimal(str(existing["total_amount"])) * refund_ratio()).quantize(
                    CENT, rounding=ROUND_HALF_UP
                )
                if refund > 0:
                    wallet_service = WalletService(self.db)
                    wallet = await wallet_service.get_wallet_by_user_id(patient_user_id)
                    if wallet is None:
                        raise PaymentException("Patient has no wallet to refund")
                    await wallet_service.credit_wallet(
                        wallet["id"],
                        refund,
                        WalletTransactionType.APPOINTMENT_REFUND,
                        description="Refund: cancelled by patient",
                        related_appointment_id=appointment_id,
                    )
                values.update(
                    payment_status_code=PaymentStatus.REFUNDED.value,
                    refund_amount=refund,
                )

            result = await self.db.execute(
                update(appointments)
                .where(appointments.c.id == appointment_id)
                .values(**values, updated_at=func.now())
                .returning(appointments)
            )
            updated = dict(result.mappings().one())

        logger.info(
            "appointment_cancelled_by_patient",
            appointment_id=str(appointment_id),
            refund_amount=str(updated["refund_amount"]),
        )

        try:
            doctor_user = await self.db.execute(
                select(doctors.c.user_id).where(doctors.c.id == updated["doctor_id"])
            )
            await NotificationService.send_cancellation_notification(
                db=self.db,
                user_id=doctor_user.scalar_one(),
                appointment=updated,
            )
        except Exception as e:
            await self.db.rollback()
            logger.warning(
                "failed_to_send_cancellation_notification",
                appointment_id=str(appointment_id),
                error=str(e),
            )

        return updated
