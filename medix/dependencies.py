"""FastAPI dependencies."""

from typing import Annotated, Any
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from medix.core.redis_client import CacheManager, get_redis_client
from medix.core.security import decode_access_token
from medix.database import get_db
from medix.services.doctor_service import DoctorService
from medix.services.user_service import UserService

# Security
security = HTTPBearer()

STAFF_ROLES = frozenset({"manager", "admin"})


def _unauthorized(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> UUID:
    """
    Extract and validate user ID from JWT token.

    Raises:
        HTTPException: If token is invalid or expired
    """
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise _unauthorized()

    user_id_str = payload.get("sub")
    if user_id_str is None or not isinstance(user_id_str, str):
        raise _unauthorized()

    try:
        return UUID(user_id_str)
    except ValueError:
        raise _unauthorized("Invalid user ID format") from None


async def get_current_user(
    user_id: Annotated[UUID, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict[str, Any]:
    """
    Get current user from database.

    Raises:
        HTTPException: If user not found or inactive
    """
    user = await UserService(db).get_user_by_id(user_id)
    if not user:
        raise _unauthorized("User not found")
    return user


async def get_current_doctor(
    user: Annotated[dict, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict[str, Any]:
    """Doctor profile of the current user (404 if the user is not a doctor)."""
    return await DoctorService(db).get_doctor_by_user_id(user["id"])


async def get_current_patient(
    user: Annotated[dict, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict[str, Any]:
    """Patient profile of the current user (404 if the user is not a patient)."""
    return await UserService(db).get_patient_by_user_id(user["id"])


async def require_staff(
    user: Annotated[dict, Depends(get_current_user)],
) -> dict[str, Any]:
    """Allow managers and admins only."""
    if user["role"] not in STAFF_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Manager or admin role required",
        )
    return user


def get_cache_manager() -> CacheManager:
    """Cache manager over the shared Redis client."""
    return CacheManager(get_redis_client())


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[dict, Depends(get_current_user)]
CurrentDoctor = Annotated[dict, Depends(get_current_doctor)]
CurrentPatient = Annotated[dict, Depends(get_current_patient)]
StaffUser = Annotated[dict, Depends(require_staff)]
Cache = Annotated[CacheManager, Depends(get_cache_manager)]
