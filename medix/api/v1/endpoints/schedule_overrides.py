"""Schedule override endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from medix.dependencies import CurrentDoctor, DatabaseSession, StaffUser
from medix.schemas.doctor_schedules import OverrideCreate, OverrideResponse, OverrideUpdate
from medix.services.doctor_service import DoctorService
from medix.services.schedule_override_service import ScheduleOverrideService

router = APIRouter(prefix="/doctor-schedule-overrides", tags=["Doctor Schedule Overrides"])


@router.get("/my", response_model=list[OverrideResponse], summary="List my overrides")
async def list_my_overrides(
    doctor: CurrentDoctor,
    db: DatabaseSession,
    from_date: date | None = Query(None),
) -> list[OverrideResponse]:
    """List the authenticated doctor's overrides."""
    rows = await ScheduleOverrideService(db).list_for_doctor(doctor["id"], from_date)
    return [OverrideResponse.model_validate(row) for row in rows]


@router.post(
    "/my",
    response_model=OverrideResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an override",
)
async def create_my_override(
    data: OverrideCreate,
    doctor: CurrentDoctor,
    db: DatabaseSession,
) -> OverrideResponse:
    """
    Block time, add extra hours or take a vacation day.

    Blocking time that holds live appointments is refused.
    """
    row = await ScheduleOverrideService(db).create_override(doctor["id"], data)
    return OverrideResponse.model_validate(row)


@router.put("/my/{override_id}", response_model=OverrideResponse, summary="Update an override")
async def update_my_override(
    override_id: UUID,
    data: OverrideUpdate,
    doctor: CurrentDoctor,
    db: DatabaseSession,
) -> OverrideResponse:
    """Update one of the authenticated doctor's overrides."""
    row = await ScheduleOverrideService(db).update_override(doctor["id"], override_id, data)
    return OverrideResponse.model_validate(row)


@router.delete(
    "/my/{override_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an override",
)
async def delete_my_override(
    override_id: UUID,
    doctor: CurrentDoctor,
    db: DatabaseSession,
) -> None:
    """Delete one of the authenticated doctor's overrides."""
    await ScheduleOverrideService(db).delete_override(doctor["id"], override_id)


@router.get(
    "/doctor/{doctor_id}",
    response_model=list[OverrideResponse],
    summary="List a doctor's overrides",
)
async def list_doctor_overrides(
    doctor_id: UUID,
    db: DatabaseSession,
    from_date: date | None = Query(None),
) -> list[OverrideResponse]:
    """Public list of a doctor's overrides."""
    await DoctorService(db).get_doctor_by_id(doctor_id)
    rows = await ScheduleOverrideService(db).list_for_doctor(doctor_id, from_date)
    return [OverrideResponse.model_validate(row) for row in rows]


@router.post(
    "/doctor/{doctor_id}",
    response_model=OverrideResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an override for a doctor",
)
async def create_doctor_override(
    doctor_id: UUID,
    data: OverrideCreate,
    staff: StaffUser,
    db: DatabaseSession,
) -> OverrideResponse:
    """Create an override on a doctor's behalf (manager or admin only)."""
    row = await ScheduleOverrideService(db).create_override(doctor_id, data)
    return OverrideResponse.model_validate(row)
