"""Recurring weekly schedule management with Redis caching."""

from collections.abc import Iterable
from types import SimpleNamespace
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from medix.config import settings
from medix.core.exceptions import BadRequestException, NotFoundException, ScheduleOverlapException
from medix.core.redis_client import CacheManager
from medix.core.scheduling import intervals_overlap
from medix.database import transaction
from medix.models.doctor_schedules import doctor_schedules
from medix.schemas.doctor_schedules import (
    ScheduleCreate,
    ScheduleReplaceItem,
    ScheduleResponse,
    ScheduleUpdate,
)
from medix.services.doctor_service import DoctorService

logger = structlog.get_logger(__name__)


def find_overlap(candidate: Any, rows: Iterable[Any]) -> Any | None:
    """First row on the same weekday whose shift overlaps ``candidate``."""
    for row in rows:
        if row.day_of_week == candidate.day_of_week and intervals_overlap(
            candidate.start_time, candidate.end_time, row.start_time, row.end_time
        ):
            return row
    return None


class DoctorScheduleService:
    """Service for a doctor's recurring shifts."""

    def __init__(self, db: AsyncSession, cache_manager: CacheManager | None = None):
        """Initialize service with database session and optional cache manager."""
        self.db = db
        self.cache = cache_manager

    @staticmethod
    def _get_cache_key(doctor_id: UUID) -> str:
        """Generate cache key for a doctor's schedule list."""
        return f"doctor_schedules:{doctor_id}"

    def _invalidate(self, doctor_id: UUID) -> None:
        if self.cache:
            self.cache.delete(self._get_cache_key(doctor_id))

    async def list_for_doctor(self, doctor_id: UUID) -> list[ScheduleResponse]:
        """Get a doctor's shifts ordered by weekday and start, with caching."""
        if self.cache:
            cached = self.cache.get_json(self._get_cache_key(doctor_id))
            if cached is not None:
                return [ScheduleResponse.model_validate(item) for item in cached]

        result = await self.db.execute(
            select(doctor_schedules)
            .where(doctor_schedules.c.doctor_id == doctor_id)
            .order_by(doctor_schedules.c.day_of_week, doctor_schedules.c.start_time)
        )
        schedules = [ScheduleResponse.model_validate(dict(row)) for row in result.mappings().all()]

        if self.cache:
            self.cache.set_json(
                self._get_cache_key(doctor_id),
                [item.model_dump(mode="json") for item in schedules],
                ttl=settings.schedule_cache_ttl,
            )

        return schedules

    async def _rows_for_doctor(self, doctor_id: UUID) -> list[Any]:
        result = await self.db.execute(
            select(doctor_schedules).where(doctor_schedules.c.doctor_id == doctor_id)
        )
        return list(result.all())

    async def create_schedule(self, doctor_id: UUID, data: ScheduleCreate) -> ScheduleResponse:
        """
        Add a shift.

        Raises:
            ScheduleOverlapException: If it overlaps another shift on the same day
        """
        async with transaction(self.db):
            await DoctorService(self.db).lock_doctor(doctor_id)
            if find_overlap(data, await self._rows_for_doctor(doctor_id)):
                raise ScheduleOverlapException()

            result = await self.db.execute(
                insert(doctor_schedules)
                .values(doctor_id=doctor_id, **data.model_dump())
                .returning(doctor_schedules)
            )
            created = ScheduleResponse.model_validate(dict(result.mappings().one()))

        self._invalidate(doctor_id)
        logger.info("schedule_created", doctor_id=str(doctor_id), schedule_id=str(created.id))
        return created

    async def update_schedule(
        self,
        doctor_id: UUID,
        schedule_id: UUID,
        data: ScheduleUpdate,
    ) -> ScheduleResponse:
        """
        Edit a shift.

        Raises:
            NotFoundException: If the shift does not exist for this doctor
            ScheduleOverlapException: If the result overlaps another shift
        """
        async with transaction(self.db):
            await DoctorService(self.db).lock_doctor(doctor_id)
            rows = await self._rows_for_doctor(doctor_id)
            existing = next((row for row in rows if row.id == schedule_id), None)
            if existing is None:
                raise NotFoundException("Schedule not found")

            changes = data.model_dump(exclude_unset=True, exclude_none=True)
            merged = SimpleNamespace(**{**existing._asdict(), **changes})
            if merged.start_time >= merged.end_time:
                raise BadRequestException("start_time must be before end_time")

            others = [row for row in rows if row.id != schedule_id]
            if find_overlap(merged, others):
                raise ScheduleOverlapException()

            result = await self.db.execute(
                update(doctor_schedules)
                .where(doctor_schedules.c.id == schedule_id)
                .values(**changes, updated_at=func.now())
                .returning(doctor_schedules)
            )
            updated = ScheduleResponse.model_validate(dict(result.mappings().one()))

        self._invalidate(doctor_id)
        logger.info("schedule_updated", doctor_id=str(doctor_id), schedule_id=str(schedule_id))
        return updated

    async def delete_schedule(self, doctor_id: UUID, schedule_id: UUID) -> None:
        """
        Delete a shift.

        Raises:
            NotFoundException: If the shift does not exist for this doctor
        """
        async with transaction(self.db):
            result = await self.db.execute(
                delete(doctor_schedules).where(
                    doctor_schedules.c.id == schedule_id,
                    doctor_schedules.c.doctor_id == doctor_id,
                )
            )
            if result.rowcount == 0:
                raise NotFoundException("Schedule not found")

        self._invalidate(doctor_id)
        logger.info("schedule_deleted", doctor_id=str(doctor_id), schedule_id=str(schedule_id))

    async def replace_schedules(
        self,
        doctor_id: UUID,
        items: list[ScheduleReplaceItem],
    ) -> list[ScheduleResponse]:
        """
        Replace the whole weekly schedule in one transaction.

        Rows missing from ``items`` are deleted, items with an ``id`` update
        that row and items without one are inserted.

        Raises:
            ScheduleOverlapException: If two items overlap on the same day
            NotFoundException: If an item references another doctor's row
        """
        for index, item in enumerate(items):
            if find_overlap(item, items[index + 1 :]):
                raise ScheduleOverlapException()

        async with transaction(self.db):
            await DoctorService(self.db).lock_doctor(doctor_id)
            existing_ids = {row.id for row in await self._rows_for_doctor(doctor_id)}
            keep_ids = {item.id for item in items if item.id is not None}
            if keep_ids - existing_ids:
                raise NotFoundException("Schedule not found")

            stale_ids = existing_ids - keep_ids
            if stale_ids:
                await self.db.execute(
                    delete(doctor_schedules).where(doctor_schedules.c.id.in_(list(stale_ids)))
                )

            for item in items:
                values = item.model_dump(exclude={"id"})
                if item.id is None:
                    await self.db.execute(
                        insert(doctor_schedules).values(doctor_id=doctor_id, **values)
                    )
                else:
                    await self.db.execute(
                        update(doctor_schedules)
                        .where(doctor_schedules.c.id == item.id)
                        .values(**values, updated_at=func.now())
                    )

        self._invalidate(doctor_id)
        logger.info("schedules_replaced", doctor_id=str(doctor_id), count=len(items))
        return await self.list_for_doctor(doctor_id)

