"""Doctor lookups and per-doctor locking."""

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from medix.core.exceptions import NotFoundException
from medix.models.doctors import doctors


class DoctorService:
    """Service for doctor profile reads."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def get_doctor_by_id(self, doctor_id: UUID) -> dict[str, Any]:
        """
        Get doctor by ID.

        Raises:
            NotFoundException: If doctor not found
        """
        result = await self.db.execute(select(doctors).where(doctors.c.id == doctor_id))
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Doctor not found")
        return dict(row)

    async def get_doctor_by_user_id(self, user_id: UUID) -> dict[str, Any]:
        """Get the doctor profile of a user."""
        result = await self.db.execute(select(doctors).where(doctors.c.user_id == user_id))
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Doctor profile not found")
        return dict(row)

    async def lock_doctor(self, doctor_id: UUID) -> dict[str, Any]:
        """
        Load the doctor row with ``SELECT ... FOR UPDATE``.

        Every write that changes what a doctor's calendar can hold takes this
        lock first, so concurrent bookings and schedule changes for the same
        doctor run one after another. The lock is held until the caller's
        transaction ends.
        """
        result = await self.db.execute(
            select(doctors).where(doctors.c.id == doctor_id).with_for_update()
        )
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Doctor not found")
        return dict(row)
