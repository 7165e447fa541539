"""Appointment endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from medix.dependencies import STAFF_ROLES, CurrentPatient, CurrentUser, DatabaseSession, StaffUser
from medix.schemas.appointments import (
    AppointmentBookingRequest,
    AppointmentResponse,
    AppointmentStatusUpdate,
    AppointmentUpdate,
    DoctorBusyResponse,
)
from medix.schemas.common import ensure_utc
from medix.services.appointment_service import AppointmentService
from medix.services.booking_service import BookingService
from medix.services.doctor_service import DoctorService

router = APIRouter()


@router.post(
    "/appointment-Booking",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book and pay for an appointment",
)
async def book_appointment(
    data: AppointmentBookingRequest,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Book an appointment for the authenticated patient.

    The amount is debited from the patient's wallet in the same transaction
    that creates the appointment.
    """
    appointment = await BookingService(db).create_appointment(current_user["id"], data)
    return AppointmentResponse.model_validate(appointment)


@router.get(
    "/doctor-busy",
    response_model=DoctorBusyResponse,
    summary="Check whether a doctor is booked in a time range",
)
async def doctor_busy(
    current_user: CurrentUser,
    db: DatabaseSession,
    doctor_id: UUID = Query(...),
    start: datetime = Query(...),
    end: datetime = Query(...),
    ignore_appointment_id: UUID | None = Query(None),
) -> DoctorBusyResponse:
    """Whether the doctor holds an appointment overlapping ``[start, end)``."""
    start, end = ensure_utc(start), ensure_utc(end)
    if end <= start:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="end must be after start",
        )

    busy = await AppointmentService(db).is_doctor_busy(
        doctor_id, start, end, ignore_appointment_id=ignore_appointment_id
    )
    return DoctorBusyResponse(doctor_id=doctor_id, start=start, end=end, busy=busy)


@router.get(
    "/by-doctor/{doctor_id}",
    response_model=list[AppointmentResponse],
    summary="List a doctor's appointments",
)
async def list_doctor_appointments(
    doctor_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
    paid_only: bool = Query(False, description="Only appointments paid through the wallet"),
) -> list[AppointmentResponse]:
    """List appointments of a doctor. Available to that doctor and to staff."""
    doctor = await DoctorService(db).get_doctor_by_id(doctor_id)
    if current_user["role"] not in STAFF_ROLES and doctor["user_id"] != current_user["id"]:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    rows = await AppointmentService(db).list_by_doctor(doctor_id, paid_only=paid_only)
    return [AppointmentResponse.model_validate(row) for row in rows]


@router.get(
    "/me",
    response_model=list[AppointmentResponse],
    summary="List my appointments",
)
async def list_my_appointments(
    patient: CurrentPatient,
    db: DatabaseSession,
) -> list[AppointmentResponse]:
    """List the authenticated patient's appointments, most recent first."""
    rows = await AppointmentService(db).list_for_patient(patient["id"])
    return [AppointmentResponse.model_validate(row) for row in rows]


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Get a single appointment."""
    service = AppointmentService(db)
    appointment = await service.get_appointment(appointment_id)
    await service.check_access(appointment, current_user)
    return AppointmentResponse.model_validate(appointment)


@router.put(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    summary="Update appointment",
)
async def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Update an appointment.

    A new time range is checked against the doctor's other appointments.
    """
    service = AppointmentService(db)
    await service.check_access(await service.get_appointment(appointment_id), current_user)
    return AppointmentResponse.model_validate(
        await service.update_appointment(appointment_id, data)
    )


@router.patch(
    "/{appointment_id}/status",
    response_model=AppointmentResponse,
    summary="Change appointment status",
)
async def update_appointment_status(
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Change an appointment's status. Available to its doctor and to staff."""
    service = AppointmentService(db)
    appointment = await service.get_appointment(appointment_id)
    await service.check_access(appointment, current_user, allow_patient=False)
    return AppointmentResponse.model_validate(await service.update_status(appointment_id, data))


@router.post(
    "/{appointment_id}/cancel",
    response_model=AppointmentResponse,
    summary="Cancel my appointment",
)
async def cancel_appointment(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Cancel the authenticated patient's appointment and refund part of the payment."""
    appointment = await BookingService(db).cancel_by_patient(current_user["id"], appointment_id)
    return AppointmentResponse.model_validate(appointment)


@router.delete(
    "/{appointment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete appointment",
)
async def delete_appointment(
    appointment_id: UUID,
    staff: StaffUser,
    db: DatabaseSession,
) -> None:
    """Permanently delete an appointment (manager or admin only)."""
    await AppointmentService(db).delete_appointment(appointment_id)
