"""Recurring schedule endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from medix.dependencies import Cache, CurrentDoctor, DatabaseSession
from medix.schemas.doctor_schedules import (
    ScheduleCreate,
    ScheduleReplaceRequest,
    ScheduleResponse,
    ScheduleUpdate,
)
from medix.services.doctor_schedule_service import DoctorScheduleService
from medix.services.doctor_service import DoctorService

router = APIRouter(prefix="/doctor-schedules", tags=["Doctor Schedules"])


@router.get("/me", response_model=list[ScheduleResponse], summary="Get my weekly schedule")
async def get_my_schedule(
    doctor: CurrentDoctor,
    db: DatabaseSession,
    cache: Cache,
) -> list[ScheduleResponse]:
    """Get the authenticated doctor's recurring shifts."""
    return await DoctorScheduleService(db, cache).list_for_doctor(doctor["id"])


@router.post(
    "/me",
    response_model=ScheduleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a shift",
)
async def create_my_schedule(
    data: ScheduleCreate,
    doctor: CurrentDoctor,
    db: DatabaseSession,
    cache: Cache,
) -> ScheduleResponse:
    """Add a recurring shift; shifts on the same day may not overlap."""
    return await DoctorScheduleService(db, cache).create_schedule(doctor["id"], data)


@router.put("/me", response_model=list[ScheduleResponse], summary="Replace my weekly schedule")
async def replace_my_schedule(
    data: ScheduleReplaceRequest,
    doctor: CurrentDoctor,
    db: DatabaseSession,
    cache: Cache,
) -> list[ScheduleResponse]:
    """Replace all shifts at once."""
    return await DoctorScheduleService(db, cache).replace_schedules(doctor["id"], data.schedules)


@router.put("/me/{schedule_id}", response_model=ScheduleResponse, summary="Edit a shift")
async def update_my_schedule(
    schedule_id: UUID,
    data: ScheduleUpdate,
    doctor: CurrentDoctor,
    db: DatabaseSession,
    cache: Cache,
) -> ScheduleResponse:
    """Edit one of the authenticated doctor's shifts."""
    return await DoctorScheduleService(db, cache).update_schedule(doctor["id"], schedule_id, data)


@router.delete(
    "/me/{schedule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a shift",
)
async def delete_my_schedule(
    schedule_id: UUID,
    doctor: CurrentDoctor,
    db: DatabaseSession,
    cache: Cache,
) -> None:
    """Delete one of the authenticated doctor's shifts."""
    await DoctorScheduleService(db, cache).delete_schedule(doctor["id"], schedule_id)


@router.get(
    "/doctor/{doctor_id}",
    response_model=list[ScheduleResponse],
    summary="Get a doctor's weekly schedule",
)
async def get_doctor_schedule(
    doctor_id: UUID,
    db: DatabaseSession,
    cache: Cache,
) -> list[ScheduleResponse]:
    """Public view of a doctor's recurring shifts."""
    await DoctorService(db).get_doctor_by_id(doctor_id)
    return await DoctorScheduleService(db, cache).list_for_doctor(doctor_id)
