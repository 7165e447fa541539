"""Availability resolution against stored schedules, overrides and bookings."""

from collections.abc import Iterable
from datetime import UTC, date, datetime, time, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from medix.config import settings
from medix.core.scheduling import (
    Availability,
    free_slots,
    is_interval_available,
    resolve_availability,
)
from medix.models.doctor_schedules import doctor_schedule_overrides, doctor_schedules
from medix.schemas.common import ensure_utc
from medix.services.appointment_service import AppointmentService
from medix.services.doctor_service import DoctorService


def to_clinic_time(value: datetime) -> datetime:
    """Convert an instant to the clinic's wall-clock time."""
    return ensure_utc(value).astimezone(settings.clinic_tz)


def clinic_day_bounds(target_date: date) -> tuple[datetime, datetime]:
    """UTC instants bounding one clinic-local calendar day."""
    tz = settings.clinic_tz
    start = datetime.combine(target_date, time.min, tzinfo=tz)
    end = datetime.combine(target_date + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(UTC), end.astimezone(UTC)


def interval_fits(
    start: datetime,
    end: datetime,
    schedules: Iterable[Any],
    overrides: Iterable[Any],
) -> bool:
    """Whether the instants ``[start, end)`` fit the given rules on one clinic-local date."""
    local_start = to_clinic_time(start)
    local_end = to_clinic_time(end)
    if local_start.date() != local_end.date():
        return False
    return is_interval_available(
        local_start.date(),
        local_start.time().replace(tzinfo=None),
        local_end.time().replace(tzinfo=None),
        schedules,
        overrides,
    )


class AvailabilityService:
    """Service answering "can this doctor see someone then?"."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def load_rules(
        self,
        doctor_id: UUID,
        dates: Iterable[date],
    ) -> tuple[list[Any], list[Any]]:
        """Load the doctor's recurring rows and the override rows on ``dates``."""
        schedule_result = await self.db.execute(
            select(doctor_schedules).where(doctor_schedules.c.doctor_id == doctor_id)
        )
        override_result = await self.db.execute(
            select(doctor_schedule_overrides).where(
                doctor_schedule_overrides.c.doctor_id == doctor_id,
                doctor_schedule_overrides.c.override_date.in_(list(dates)),
            )
        )
        return list(schedule_result.all()), list(override_result.all())

    async def resolve(self, doctor_id: UUID, target_date: date, at: time) -> Availability:
        """
        Resolve availability at one clinic-local date and time.

        Raises:
            NotFoundException: If doctor not found
        """
        await DoctorService(self.db).get_doctor_by_id(doctor_id)
        schedules, overrides = await self.load_rules(doctor_id, [target_date])
        return resolve_availability(target_date, at, schedules, overrides)

    async def check_interval(self, doctor_id: UUID, start: datetime, end: datetime) -> bool:
        """
        Whether ``[start, end)`` lies inside the doctor's availability.

        The instants are read in the clinic timezone and must fall on a single
        local date.
        """
        local_date = to_clinic_time(start).date()
        schedules, overrides = await self.load_rules(doctor_id, [local_date])
        return interval_fits(start, end, schedules, overrides)

    async def available_slots(
        self,
        doctor_id: UUID,
        target_date: date,
        slot_minutes: int | None = None,
    ) -> tuple[int, list[tuple[datetime, datetime]]]:
        """
        List bookable slots on a clinic-local date.

        Slot length defaults to the doctor's consultation duration.

        Returns:
            Tuple of (slot length in minutes, slots)

        Raises:
            NotFoundException: If doctor not found
        """
        doctor = await DoctorService(self.db).get_doctor_by_id(doctor_id)
        minutes = (
            slot_minutes
            or doctor.get("consultation_duration_minutes")
            or settings.default_slot_minutes
        )

        schedules, overrides = await self.load_rules(doctor_id, [target_date])
        day_start, day_end = clinic_day_bounds(target_date)
        booked = await AppointmentService(self.db).get_conflicting_appointments(
            doctor_id, day_start, day_end
        )
        busy = [
            (ensure_utc(row["appointment_start_time"]), ensure_utc(row["appointment_end_time"]))
            for row in booked
        ]
        return minutes, free_slots(
            target_date,
            schedules,
            overrides,
            minutes,
            busy=busy,
            tz=settings.clinic_tz,
        )
