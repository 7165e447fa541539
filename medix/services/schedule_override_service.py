"""Date overrides of a doctor's schedule: blocks, extra hours and vacations."""

from datetime import UTC, date, datetime, time, timedelta
from types import SimpleNamespace
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from medix.config import settings
from medix.core.exceptions import (
    BadRequestException,
    ConflictingAppointmentsException,
    NotFoundException,
    ScheduleOverlapException,
)
from medix.core.scheduling import intervals_overlap
from medix.database import transaction
from medix.models.doctor_schedules import doctor_schedule_overrides
from medix.schemas.doctor_schedules import OverrideCreate, OverrideType, OverrideUpdate
from medix.services.appointment_service import AppointmentService
from medix.services.availability_service import (
    AvailabilityService,
    clinic_day_bounds,
    interval_fits,
)
from medix.services.doctor_service import DoctorService

logger = structlog.get_logger(__name__)


def override_range(row: Any) -> tuple[datetime, datetime]:
    """UTC instants covered by an override; a vacation covers its whole day."""
    tz = settings.clinic_tz
    if row.override_type == OverrideType.VACATION:
        start = datetime.combine(row.override_date, time.min, tzinfo=tz)
        end = datetime.combine(row.override_date + timedelta(days=1), time.min, tzinfo=tz)
    else:
        start = datetime.combine(row.override_date, row.start_time, tzinfo=tz)
        end = datetime.combine(row.override_date, row.end_time, tzinfo=tz)
    return start.astimezone(UTC), end.astimezone(UTC)


def _blocks(row: Any) -> bool:
    return not row.is_available or row.override_type == OverrideType.VACATION


class ScheduleOverrideService:
    """Service for per-date schedule overrides."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db
        self.appointments = AppointmentService(db)

    async def list_for_doctor(
        self,
        doctor_id: UUID,
        from_date: date | None = None,
    ) -> list[dict[str, Any]]:
        """List a doctor's overrides by date and start time."""
        stmt = select(doctor_schedule_overrides).where(
            doctor_schedule_overrides.c.doctor_id == doctor_id
        )
        if from_date is not None:
            stmt = stmt.where(doctor_schedule_overrides.c.override_date >= from_date)
        result = await self.db.execute(
            stmt.order_by(
                doctor_schedule_overrides.c.override_date,
                doctor_schedule_overrides.c.start_time,
            )
        )
        return [dict(row) for row in result.mappings().all()]

    async def _get_owned(self, doctor_id: UUID, override_id: UUID) -> Any:
        result = await self.db.execute(
            select(doctor_schedule_overrides).where(
                doctor_schedule_overrides.c.id == override_id,
                doctor_schedule_overrides.c.doctor_id == doctor_id,
            )
        )
        row = result.first()
        if row is None:
            raise NotFoundException("Schedule override not found")
        return row

    async def _check_no_overlap(
        self,
        doctor_id: UUID,
        candidate: Any,
        ignore_override_id: UUID | None = None,
    ) -> None:
        stmt = select(doctor_schedule_overrides).where(
            doctor_schedule_overrides.c.doctor_id == doctor_id,
            doctor_schedule_overrides.c.override_date == candidate.override_date,
        )
        if ignore_override_id is not None:
            stmt = stmt.where(doctor_schedule_overrides.c.id != ignore_override_id)
        result = await self.db.execute(stmt)
        for row in result.all():
            if intervals_overlap(
                candidate.start_time, candidate.end_time, row.start_time, row.end_time
            ):
                raise ScheduleOverlapException("Override overlaps an existing override on this date")

    async def _check_not_orphaning(self, doctor_id: UUID, old: Any | None, new: Any | None) -> None:
        """
        Refuse changes that would leave live appointments without cover.

        ``old`` is the row before the change (None on create), ``new`` the row
        after it (None on delete). The first override on a date replaces the
        weekly rows for the whole day, so every live appointment on the
        affected dates that fits the current rules must still fit the rules
        after the change. Nothing may remain inside a blocking ``new`` row.
        """
        conflicts: list[dict[str, Any]] = []

        if new is not None and _blocks(new):
            conflicts = await self.appointments.get_conflicting_appointments(
                doctor_id, *override_range(new)
            )

        if not conflicts:
            dates = {row.override_date for row in (old, new) if row is not None}
            schedules, before = await AvailabilityService(self.db).load_rules(doctor_id, dates)
            after = [row for row in before if old is None or row.id != old.id]
            if new is not None:
                after.append(new)

            for day in sorted(dates):
                live = await self.appointments.get_conflicting_appointments(
                    doctor_id, *clinic_day_bounds(day)
                )
                for row in live:
                    start = row["appointment_start_time"]
                    end = row["appointment_end_time"]
                    if interval_fits(start, end, schedules, before) and not interval_fits(
                        start, end, schedules, after
                    ):
                        conflicts.append(row)

        if conflicts:
            logger.info(
                "override_rejected",
                doctor_id=str(doctor_id),
                conflicting=[str(row["id"]) for row in conflicts],
            )
            raise ConflictingAppointmentsException()

    async def create_override(self, doctor_id: UUID, data: OverrideCreate) -> dict[str, Any]:
        """
        Create an override.

        Raises:
            NotFoundException: If doctor not found
            ScheduleOverlapException: If it overlaps another override on the date
            ConflictingAppointmentsException: If live appointments would lose cover
        """
        async with transaction(self.db):
            await DoctorService(self.db).lock_doctor(doctor_id)
            await self._check_no_overlap(doctor_id, data)
            await self._check_not_orphaning(doctor_id, None, data)

            result = await self.db.execute(
                insert(doctor_schedule_overrides)
                .values(
                    doctor_id=doctor_id,
                    override_date=data.override_date,
                    start_time=data.start_time,
                    end_time=data.end_time,
                    is_available=data.is_available,
                    override_type=data.override_type.value,
                    reason=data.reason,
                )
                .returning(doctor_schedule_overrides)
            )
            created = dict(result.mappings().one())

        logger.info(
            "override_created",
            doctor_id=str(doctor_id),
            override_id=str(created["id"]),
            override_type=created["override_type"],
            override_date=str(created["override_date"]),
        )
        return created

    async def update_override(
        self,
        doctor_id: UUID,
        override_id: UUID,
        data: OverrideUpdate,
    ) -> dict[str, Any]:
        """
        Update an override; the resulting row is validated like a new one.

        Raises:
            NotFoundException: If the override does not exist for this doctor
            ScheduleOverlapException: If it overlaps another override on the date
            ConflictingAppointmentsException: If live appointments would lose cover
        """
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "override_type" in changes:
            changes["override_type"] = changes["override_type"].value

        async with transaction(self.db):
            await DoctorService(self.db).lock_doctor(doctor_id)
            existing = await self._get_owned(doctor_id, override_id)
            merged = SimpleNamespace(**{**existing._asdict(), **changes})

            if merged.override_type == OverrideType.VACATION:
                if merged.is_available:
                    if "is_available" in changes:
                        raise BadRequestException("A vacation override cannot be available")
                    merged.is_available = False
                    changes["is_available"] = False
            if merged.start_time >= merged.end_time:
                raise BadRequestException("start_time must be before end_time")

            await self._check_no_overlap(doctor_id, merged, ignore_override_id=override_id)
            await self._check_not_orphaning(doctor_id, existing, merged)

            result = await self.db.execute(
                update(doctor_schedule_overrides)
                .where(doctor_schedule_overrides.c.id == override_id)
                .values(**changes, updated_at=func.now())
                .returning(doctor_schedule_overrides)
            )
            updated = dict(result.mappings().one())

        logger.info("override_updated", doctor_id=str(doctor_id), override_id=str(override_id))
        return updated

    async def delete_override(self, doctor_id: UUID, override_id: UUID) -> None:
        """
        Delete an override.

        Deleting available time that still holds live appointments is refused;
        deleting a block always succeeds.

        Raises:
            NotFoundException: If the override does not exist for this doctor
            ConflictingAppointmentsException: If live appointments would lose cover
        """
        async with transaction(self.db):
            await DoctorService(self.db).lock_doctor(doctor_id)
            existing = await self._get_owned(doctor_id, override_id)
            await self._check_not_orphaning(doctor_id, existing, None)
            await self.db.execute(
                delete(doctor_schedule_overrides).where(
                    doctor_schedule_overrides.c.id == override_id
                )
            )

        logger.info("override_deleted", doctor_id=str(doctor_id), override_id=str(override_id))
