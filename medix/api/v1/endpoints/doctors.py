"""Doctor availability endpoints."""

from datetime import date, time
from uuid import UUID

from fastapi import APIRouter, Query

from medix.dependencies import DatabaseSession
from medix.schemas.doctor_schedules import (
    AvailabilityResponse,
    AvailableSlot,
    AvailableSlotsResponse,
)
from medix.services.availability_service import AvailabilityService

router = APIRouter(prefix="/doctors", tags=["Doctors"])


@router.get(
    "/{doctor_id}/availability",
    response_model=AvailabilityResponse,
    summary="Resolve a doctor's availability",
)
async def get_availability(
    doctor_id: UUID,
    db: DatabaseSession,
    on_date: date = Query(..., alias="date"),
    at: time = Query(..., alias="time"),
) -> AvailabilityResponse:
    """
    Whether the doctor works at a clinic-local date and time.

    Date overrides take precedence over the weekly schedule for the whole day.
    """
    availability = await AvailabilityService(db).resolve(doctor_id, on_date, at)
    return AvailabilityResponse(
        doctor_id=doctor_id,
        date=on_date,
        time=at,
        available=availability.available,
        source=availability.source.value,
    )


@router.get(
    "/{doctor_id}/available-slots",
    response_model=AvailableSlotsResponse,
    summary="List a doctor's free slots",
)
async def get_available_slots(
    doctor_id: UUID,
    db: DatabaseSession,
    on_date: date = Query(..., alias="date"),
    slot_minutes: int | None = Query(None, ge=5, le=480),
) -> AvailableSlotsResponse:
    """List free slots on a clinic-local date; slot length defaults to the consultation duration."""
    minutes, slots = await AvailabilityService(db).available_slots(doctor_id, on_date, slot_minutes)
    return AvailableSlotsResponse(
        doctor_id=doctor_id,
        date=on_date,
        slot_minutes=minutes,
        slots=[AvailableSlot(start=start, end=end) for start, end in slots],
    )
