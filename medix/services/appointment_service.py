"""Appointment service: overlap detection and appointment lifecycle."""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from medix.config import settings
from medix.core.exceptions import (
    BadRequestException,
    DoctorUnavailableException,
    ForbiddenException,
    NotFoundException,
    SlotConflictException,
)
from medix.database import transaction
from medix.models.appointments import appointments
from medix.models.doctors import doctors
from medix.models.patients import patients
from medix.schemas.appointments import (
    DOCTOR_FAULT_STATUSES,
    SLOT_RELEASING_STATUSES,
    AppointmentStatus,
    AppointmentStatusUpdate,
    AppointmentUpdate,
    PaymentStatus,
)
from medix.schemas.common import ensure_utc
from medix.schemas.wallets import WalletTransactionType
from medix.services.doctor_service import DoctorService
from medix.services.notification_service import NotificationService
from medix.services.wallet_service import WalletService

logger = structlog.get_logger(__name__)

_RELEASING_CODES = [status.value for status in SLOT_RELEASING_STATUSES]


def slot_holding():
    """WHERE clause selecting appointments that occupy the doctor's time."""
    return appointments.c.status_code.notin_(_RELEASING_CODES)


def duration_minutes(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() // 60)


class AppointmentService:
    """Service for reading, checking and changing appointments."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    def _overlap_query(
        self,
        doctor_id: UUID,
        start: datetime,
        end: datetime,
        ignore_appointment_id: UUID | None = None,
    ):
        conditions = [
            appointments.c.doctor_id == doctor_id,
            slot_holding(),
            appointments.c.appointment_start_time < ensure_utc(end),
            appointments.c.appointment_end_time > ensure_utc(start),
        ]
        if ignore_appointment_id is not None:
            conditions.append(appointments.c.id != ignore_appointment_id)
        return select(appointments).where(*conditions)

    async def is_doctor_busy(
        self,
        doctor_id: UUID,
        start: datetime,
        end: datetime,
        ignore_appointment_id: UUID | None = None,
    ) -> bool:
        """
        Whether the doctor holds an appointment overlapping ``[start, end)``.

        Touching intervals do not overlap. Cancelled, no-show and missed
        appointments do not hold the slot.

        Args:
            doctor_id: Doctor to check
            start: Range start (inclusive)
            end: Range end (exclusive)
            ignore_appointment_id: Appointment to leave out, e.g. the one being edited
        """
        stmt = self._overlap_query(doctor_id, start, end, ignore_appointment_id).limit(1)
        result = await self.db.execute(stmt)
        return result.first() is not None

    async def get_conflicting_appointments(
        self,
        doctor_id: UUID,
        start: datetime,
        end: datetime,
        ignore_appointment_id: UUID | None = None,
    ) -> list[dict[str, Any]]:
        """List slot-holding appointments overlapping ``[start, end)``."""
        stmt = self._overlap_query(doctor_id, start, end, ignore_appointment_id).order_by(
            appointments.c.appointment_start_time
        )
        result = await self.db.execute(stmt)
        return [dict(row) for row in result.mappings().all()]

    async def has_live_appointments_in_range(
        self,
        doctor_id: UUID,
        start: datetime,
        end: datetime,
    ) -> bool:
        """Whether any slot-holding appointment intersects ``[start, end)``."""
        return await self.is_doctor_busy(doctor_id, start, end)

    async def get_appointment(self, appointment_id: UUID, for_update: bool = False) -> dict[str, Any]:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
        """
        stmt = select(appointments).where(appointments.c.id == appointment_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Appointment not found")
        return dict(row)

    async def check_access(
        self,
        appointment: dict[str, Any],
        user: dict[str, Any],
        allow_patient: bool = True,
    ) -> None:
        """
        Allow staff, the appointment's doctor and (optionally) its patient.

        Raises:
            ForbiddenException: If the user has no access to this appointment
        """
        if user["role"] in ("manager", "admin"):
            return

        doctor_result = await self.db.execute(
            select(doctors.c.user_id).where(doctors.c.id == appointment["doctor_id"])
        )
        if doctor_result.scalar_one_or_none() == user["id"]:
            return

        if allow_patient:
            patient_result = await self.db.execute(
                select(patients.c.user_id).where(patients.c.id == appointment["patient_id"])
            )
            if patient_result.scalar_one_or_none() == user["id"]:
                return

        raise ForbiddenException("Access denied to this appointment")

    async def list_by_doctor(self, doctor_id: UUID, paid_only: bool = False) -> list[dict[str, Any]]:
        """
        List a doctor's appointments by start time.

        Args:
            doctor_id: Doctor ID
            paid_only: Keep only appointments linked to a ledger payment
        """
        stmt = select(appointments).where(appointments.c.doctor_id == doctor_id)
        if paid_only:
            stmt = stmt.where(appointments.c.transaction_id.is_not(None))
        result = await self.db.execute(stmt.order_by(appointments.c.appointment_start_time))
        return [dict(row) for row in result.mappings().all()]

    async def list_for_patient(self, patient_id: UUID) -> list[dict[str, Any]]:
        """List a patient's appointments, most recent first."""
        result = await self.db.execute(
            select(appointments)
            .where(appointments.c.patient_id == patient_id)
            .order_by(appointments.c.appointment_start_time.desc())
        )
        return [dict(row) for row in result.mappings().all()]

    async def update_appointment(
        self,
        appointment_id: UUID,
        data: AppointmentUpdate,
    ) -> dict[str, Any]:
        """
        Partially update an appointment.

        When the time range changes it must keep the paid duration, fit the
        doctor's availability and not overlap another appointment.

        Raises:
            NotFoundException: If appointment not found
            BadRequestException: If a paid appointment would change length
            DoctorUnavailableException: If the new range is outside the doctor's schedule
            SlotConflictException: If the new range overlaps another appointment
        """
        update_data = data.model_dump(exclude_unset=True)

        async with transaction(self.db):
            existing = await self.get_appointment(appointment_id)
            values: dict[str, Any] = {}

            if "appointment_start_time" in update_data or "appointment_end_time" in update_data:
                start = update_data.get("appointment_start_time") or ensure_utc(
                    existing["appointment_start_time"]
                )
                end = update_data.get("appointment_end_time") or ensure_utc(
                    existing["appointment_end_time"]
                )
                if end <= start:
                    raise BadRequestException(
                        "appointment_end_time must be after appointment_start_time"
                    )
                paid = existing["payment_status_code"] == PaymentStatus.PAID.value
                if paid and duration_minutes(start, end) != existing["duration_minutes"]:
                    raise BadRequestException("Rescheduling must keep the paid duration")

                await DoctorService(self.db).lock_doctor(existing["doctor_id"])
                if settings.booking_requires_schedule:
                    from medix.services.availability_service import AvailabilityService

                    if not await AvailabilityService(self.db).check_interval(
                        existing["doctor_id"], start, end
                    ):
                        raise DoctorUnavailableException()

                holds_slot = AppointmentStatus(existing["status_code"]) not in SLOT_RELEASING_STATUSES
                if holds_slot and await self.is_doctor_busy(
                    existing["doctor_id"], start, end, ignore_appointment_id=appointment_id
                ):
                    raise SlotConflictException()

                values.update(
                    appointment_start_time=start,
                    appointment_end_time=end,
                    duration_minutes=duration_minutes(start, end),
                )

            for field in ("chief_complaint", "notes"):
                if field in update_data:
                    values[field] = update_data[field]

            if not values:
                return existing

            try:
                result = await self.db.execute(
                    update(appointments)
                    .where(appointments.c.id == appointment_id)
                    .values(**values, updated_at=func.now())
                    .returning(appointments)
                )
            except IntegrityError as e:
                raise SlotConflictException() from e
            updated = dict(result.mappings().one())

        logger.info("appointment_updated", appointment_id=str(appointment_id), fields=list(values))
        return updated

    async def update_status(
        self,
        appointment_id: UUID,
        data: AppointmentStatusUpdate,
    ) -> dict[str, Any]:
        """
        Move an appointment to a new status.

        Cancelling or missing by the doctor refunds a paid appointment in full
        within the same transaction. Moving an appointment back into a
        slot-holding status re-checks the doctor's calendar.

        Raises:
            NotFoundException: If appointment not found
            SlotConflictException: If reactivation would double-book the doctor
        """
        new_status = data.status

        async with transaction(self.db):
            existing = await self.get_appointment(appointment_id, for_update=True)
            old_status = AppointmentStatus(existing["status_code"])
            values: dict[str, Any] = {"status_code": new_status.value}
            if data.notes is not None:
                values["notes"] = data.notes

            if old_status in SLOT_RELEASING_STATUSES and new_status not in SLOT_RELEASING_STATUSES:
                await DoctorService(self.db).lock_doctor(existing["doctor_id"])
                if await self.is_doctor_busy(
                    existing["doctor_id"],
                    existing["appointment_start_time"],
                    existing["appointment_end_time"],
                    ignore_appointment_id=appointment_id,
                ):
                    raise SlotConflictException()

            if new_status in SLOT_RELEASING_STATUSES and existing["cancelled_at"] is None:
                values["cancelled_at"] = datetime.now(UTC)

            paid = existing["payment_status_code"] == PaymentStatus.PAID.value
            if paid and new_status in DOCTOR_FAULT_STATUSES:
                refund = Decimal(str(existing["total_amount"]))
                await self._refund_patient(existing, refund, f"Refund: {new_status.value}")
                values.update(
                    payment_status_code=PaymentStatus.REFUNDED.value,
                    refund_amount=refund,
                )
            elif paid and new_status == AppointmentStatus.COMPLETED:
                values["payment_status_code"] = PaymentStatus.COMPLETED.value

            try:
                result = await self.db.execute(
                    update(appointments)
                    .where(appointments.c.id == appointment_id)
                    .values(**values, updated_at=func.now())
                    .returning(appointments)
                )
            except IntegrityError as e:
                raise SlotConflictException() from e
            updated = dict(result.mappings().one())

        logger.info(
            "appointment_status_changed",
            appointment_id=str(appointment_id),
            old_status=old_status.value,
            new_status=new_status.value,
        )
        await self._notify_patient_of_status(updated)
        return updated

    async def _refund_patient(self, appointment: dict[str, Any], amount: Decimal, reason: str) -> None:
        """Credit ``amount`` to the appointment's patient. Caller owns the transaction."""
        if amount <= 0:
            return

        result = await self.db.execute(
            select(patients.c.user_id).where(patients.c.id == appointment["patient_id"])
        )
        patient_user_id = result.scalar_one()

        wallet_service = WalletService(self.db)
        wallet = await wallet_service.get_wallet_by_user_id(patient_user_id)
        if wallet is None:
            raise BadRequestException("Patient has no wallet to refund")

        await wallet_service.credit_wallet(
            wallet["id"],
            amount,
            WalletTransactionType.APPOINTMENT_REFUND,
            description=reason,
            related_appointment_id=appointment["id"],
        )

    async def _notify_patient_of_status(self, appointment: dict[str, Any]) -> None:
        try:
            result = await self.db.execute(
                select(patients.c.user_id).where(patients.c.id == appointment["patient_id"])
            )
            await NotificationService.send_appointment_status_notification(
                db=self.db,
                user_id=result.scalar_one(),
                appointment=appointment,
            )
        except Exception as e:
            await self.db.rollback()
            logger.warning(
                "failed_to_send_appointment_notification",
                appointment_id=str(appointment["id"]),
                error=str(e),
            )

    async def delete_appointment(self, appointment_id: UUID) -> None:
        """
        Hard-delete an appointment.

        Raises:
            NotFoundException: If appointment not found
        """
        async with transaction(self.db):
            result = await self.db.execute(
                delete(appointments).where(appointments.c.id == appointment_id)
            )
            if result.rowcount == 0:
                raise NotFoundException("Appointment not found")

        logger.info("appointment_deleted", appointment_id=str(appointment_id))
