"""User and patient lookups."""

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from medix.core.exceptions import NotFoundException
from medix.models.patients import patients
from medix.models.users import users


class UserService:
    """Service for user and patient profile reads."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def get_user_by_id(self, user_id: UUID) -> dict[str, Any] | None:
        """Get an active user by ID."""
        result = await self.db.execute(
            select(users).where(users.c.id == user_id, users.c.is_active.is_(True))
        )
        row = result.mappings().first()
        return dict(row) if row else None

    async def get_patient_by_user_id(self, user_id: UUID) -> dict[str, Any]:
        """
        Get the patient profile of a user.

        Raises:
            NotFoundException: If the user has no patient profile
        """
        result = await self.db.execute(select(patients).where(patients.c.user_id == user_id))
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Patient profile not found")
        return dict(row)
