"""Tests for appointment reads, updates, status changes and cancellation."""

from datetime import UTC, datetime, time, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import insert, select
from sqlalchemy.exc import IntegrityError

from medix.models import appointments, wallets
from medix.services import appointment_service
from medix.services.appointment_service import AppointmentService
from tests.conftest import at, create_user, headers_for

BOOKING_URL = "/api/v1/appointments/appointment-Booking"


@pytest.fixture
async def booked(
    client: AsyncClient,
    patient_headers: dict,
    wallet: dict,
    monday_schedule: dict,
    booking_payload,
) -> dict:
    """A paid 10:00-11:00 appointment on the next Monday."""
    response = await client.post(
        BOOKING_URL, json=booking_payload((10, 0), (11, 0)), headers=patient_headers
    )
    assert response.status_code == 201
    return response.json()


async def wallet_balance(db, wallet_id) -> Decimal:
    result = await db.execute(select(wallets.c.balance).where(wallets.c.id == wallet_id))
    return Decimal(str(result.scalar_one()))


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient) -> None:
    """Test health check endpoint."""
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data


@pytest.mark.asyncio
async def test_doctor_busy(
    client: AsyncClient,
    patient_headers: dict,
    doctor: dict,
    booked: dict,
    monday,
) -> None:
    async def busy(start, end, **params) -> bool:
        response = await client.get(
            "/api/v1/appointments/doctor-busy",
            params={"doctor_id": str(doctor["id"]), "start": start, "end": end, **params},
            headers=patient_headers,
        )
        assert response.status_code == 200
        return response.json()["busy"]

    assert await busy(at(monday, 10, 30), at(monday, 10, 45)) is True
    assert await busy(at(monday, 11, 0), at(monday, 12, 0)) is False
    assert await busy(at(monday, 9, 0), at(monday, 10, 0)) is False
    assert (
        await busy(at(monday, 10, 0), at(monday, 11, 0), ignore_appointment_id=booked["id"])
        is False
    )


@pytest.mark.asyncio
async def test_doctor_busy_rejects_inverted_range(
    client: AsyncClient,
    patient_headers: dict,
    doctor: dict,
    monday,
) -> None:
    response = await client.get(
        "/api/v1/appointments/doctor-busy",
        params={
            "doctor_id": str(doctor["id"]),
            "start": at(monday, 11, 0),
            "end": at(monday, 10, 0),
        },
        headers=patient_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_move_within_schedule_does_not_conflict_with_itself(
    client: AsyncClient,
    patient_headers: dict,
    booked: dict,
    monday,
) -> None:
    """Sliding an appointment over part of its own slot is allowed."""
    response = await client.put(
        f"/api/v1/appointments/{booked['id']}",
        json={
            "appointment_start_time": at(monday, 10, 30),
            "appointment_end_time": at(monday, 11, 30),
            "notes": "Moved",
        },
        headers=patient_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["duration_minutes"] == 60
    assert data["appointment_start_time"].startswith(f"{monday.isoformat()}T10:30")
    assert data["notes"] == "Moved"


@pytest.mark.asyncio
async def test_update_into_other_appointment_conflicts(
    client: AsyncClient,
    patient_headers: dict,
    booked: dict,
    booking_payload,
    monday,
) -> None:
    second = await client.post(
        BOOKING_URL, json=booking_payload((11, 0), (11, 30), amount="50000"), headers=patient_headers
    )
    assert second.status_code == 201

    response = await client.put(
        f"/api/v1/appointments/{booked['id']}",
        json={
            "appointment_start_time": at(monday, 10, 30),
            "appointment_end_time": at(monday, 11, 30),
        },
        headers=patient_headers,
    )

    assert response.status_code == 400
    assert response.json()["error"] == "SlotConflictException"


@pytest.mark.asyncio
async def test_move_outside_schedule_is_rejected(
    client: AsyncClient,
    patient_headers: dict,
    booked: dict,
    monday,
) -> None:
    """The weekly shift ends at 12:00, so an evening slot is refused."""
    response = await client.put(
        f"/api/v1/appointments/{booked['id']}",
        json={
            "appointment_start_time": at(monday, 22, 0),
            "appointment_end_time": at(monday, 23, 0),
        },
        headers=patient_headers,
    )

    assert response.status_code == 400
    assert response.json()["error"] == "DoctorUnavailableException"

    current = await client.get(f"/api/v1/appointments/{booked['id']}", headers=patient_headers)
    assert current.json()["appointment_start_time"] == booked["appointment_start_time"]


@pytest.mark.asyncio
async def test_move_into_vacation_is_rejected(
    client: AsyncClient,
    patient_headers: dict,
    doctor_headers: dict,
    booked: dict,
    monday,
) -> None:
    next_monday = monday + timedelta(days=7)
    vacation = await client.post(
        "/api/v1/doctor-schedule-overrides/my",
        json={"override_date": next_monday.isoformat(), "override_type": "vacation"},
        headers=doctor_headers,
    )
    assert vacation.status_code == 201

    response = await client.put(
        f"/api/v1/appointments/{booked['id']}",
        json={
            "appointment_start_time": at(next_monday, 10, 0),
            "appointment_end_time": at(next_monday, 11, 0),
        },
        headers=patient_headers,
    )

    assert response.status_code == 400
    assert response.json()["error"] == "DoctorUnavailableException"


@pytest.mark.asyncio
async def test_paid_appointment_cannot_change_length(
    client: AsyncClient,
    patient_headers: dict,
    booked: dict,
    monday,
) -> None:
    response = await client.put(
        f"/api/v1/appointments/{booked['id']}",
        json={"appointment_end_time": at(monday, 11, 30)},
        headers=patient_headers,
    )

    assert response.status_code == 400
    assert response.json()["error"] == "BadRequestException"
    assert response.json()["message"] == "Rescheduling must keep the paid duration"


@pytest.mark.asyncio
async def test_update_rejected_by_database_constraint(
    client: AsyncClient,
    patient_headers: dict,
    booked: dict,
    monday,
    monkeypatch,
) -> None:
    """An overlap caught only by the exclusion constraint reads as a slot conflict."""

    def failing_update(table):
        raise IntegrityError("UPDATE appointments", {}, Exception("appointments_no_overlap"))

    monkeypatch.setattr(appointment_service, "update", failing_update)

    response = await client.put(
        f"/api/v1/appointments/{booked['id']}",
        json={
            "appointment_start_time": at(monday, 10, 30),
            "appointment_end_time": at(monday, 11, 30),
        },
        headers=patient_headers,
    )

    assert response.status_code == 400
    assert response.json()["error"] == "SlotConflictException"

    current = await client.get(f"/api/v1/appointments/{booked['id']}", headers=patient_headers)
    assert current.json()["appointment_start_time"] == booked["appointment_start_time"]


@pytest.mark.asyncio
async def test_get_appointment_access(
    client: AsyncClient,
    patient_headers: dict,
    doctor_headers: dict,
    booked: dict,
    db_session,
) -> None:
    stranger = await create_user(db_session, "patient", "Other Patient")

    for headers in (patient_headers, doctor_headers):
        response = await client.get(f"/api/v1/appointments/{booked['id']}", headers=headers)
        assert response.status_code == 200

    response = await client.get(
        f"/api/v1/appointments/{booked['id']}", headers=headers_for(stranger)
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_get_missing_appointment(client: AsyncClient, patient_headers: dict) -> None:
    response = await client.get(f"/api/v1/appointments/{uuid4()}", headers=patient_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_my_appointments(
    client: AsyncClient,
    patient_headers: dict,
    booked: dict,
) -> None:
    response = await client.get("/api/v1/appointments/me", headers=patient_headers)

    assert response.status_code == 200
    assert [item["id"] for item in response.json()] == [booked["id"]]


@pytest.mark.asyncio
async def test_list_by_doctor_paid_only(
    client: AsyncClient,
    db_session,
    doctor: dict,
    patient: dict,
    doctor_headers: dict,
    patient_headers: dict,
    booked: dict,
    monday,
) -> None:
    """Unpaid appointments are left out of the paid-only listing."""
    await db_session.execute(
        insert(appointments).values(
            doctor_id=doctor["id"],
            patient_id=patient["id"],
            appointment_start_time=datetime.combine(monday, time(8, 0), tzinfo=UTC),
            appointment_end_time=datetime.combine(monday, time(8, 30), tzinfo=UTC),
            duration_minutes=30,
            status_code="BeforeAppointment",
            payment_status_code="Unpaid",
            consultation_fee=Decimal("200000"),
            total_amount=Decimal("200000"),
        )
    )
    await db_session.commit()
    url = f"/api/v1/appointments/by-doctor/{doctor['id']}"

    everything = await client.get(url, headers=doctor_headers)
    paid = await client.get(url, params={"paid_only": True}, headers=doctor_headers)
    forbidden = await client.get(url, headers=patient_headers)

    assert len(everything.json()) == 2
    assert [item["id"] for item in paid.json()] == [booked["id"]]
    assert forbidden.status_code == 403


@pytest.mark.asyncio
async def test_patient_cancel_refunds_and_releases_slot(
    client: AsyncClient,
    db_session,
    patient_headers: dict,
    wallet: dict,
    booked: dict,
    booking_payload,
) -> None:
    response = await client.post(
        f"/api/v1/appointments/{booked['id']}/cancel", headers=patient_headers
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status_code"] == "CancelledByPatient"
    assert data["payment_status_code"] == "Refunded"
    assert data["refund_amount"] == 160000.0
    assert data["cancelled_at"] is not None
    assert await wallet_balance(db_session, wallet["id"]) == Decimal("460000")

    rebook = await client.post(
        BOOKING_URL, json=booking_payload((10, 0), (11, 0)), headers=patient_headers
    )
    assert rebook.status_code == 201


@pytest.mark.asyncio
async def test_cancel_twice_is_rejected(
    client: AsyncClient,
    patient_headers: dict,
    booked: dict,
) -> None:
    url = f"/api/v1/appointments/{booked['id']}/cancel"
    assert (await client.post(url, headers=patient_headers)).status_code == 200

    response = await client.post(url, headers=patient_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_cancel_inside_cutoff_is_rejected(
    client: AsyncClient,
    db_session,
    doctor: dict,
    patient: dict,
    patient_headers: dict,
) -> None:
    start = datetime.now(UTC) + timedelta(minutes=30)
    result = await db_session.execute(
        insert(appointments)
        .values(
            doctor_id=doctor["id"],
            patient_id=patient["id"],
            appointment_start_time=start,
            appointment_end_time=start + timedelta(minutes=30),
            duration_minutes=30,
            status_code="BeforeAppointment",
            payment_status_code="Unpaid",
            consultation_fee=Decimal("200000"),
            total_amount=Decimal("200000"),
        )
        .returning(appointments.c.id)
    )
    appointment_id = result.scalar_one()
    await db_session.commit()

    response = await client.post(
        f"/api/v1/appointments/{appointment_id}/cancel", headers=patient_headers
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_doctor_cancel_refunds_in_full(
    client: AsyncClient,
    db_session,
    doctor_headers: dict,
    wallet: dict,
    booked: dict,
) -> None:
    response = await client.patch(
        f"/api/v1/appointments/{booked['id']}/status",
        json={"status": "CancelledByDoctor", "notes": "Emergency"},
        headers=doctor_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["payment_status_code"] == "Refunded"
    assert data["refund_amount"] == 200000.0
    assert await wallet_balance(db_session, wallet["id"]) == Decimal("500000")


@pytest.mark.asyncio
async def test_patient_cannot_change_status(
    client: AsyncClient,
    patient_headers: dict,
    booked: dict,
) -> None:
    response = await client.patch(
        f"/api/v1/appointments/{booked['id']}/status",
        json={"status": "Completed"},
        headers=patient_headers,
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_completing_settles_payment(
    client: AsyncClient,
    doctor_headers: dict,
    booked: dict,
) -> None:
    response = await client.patch(
        f"/api/v1/appointments/{booked['id']}/status",
        json={"status": "Completed"},
        headers=doctor_headers,
    )

    assert response.status_code == 200
    assert response.json()["payment_status_code"] == "Completed"


@pytest.mark.asyncio
async def test_status_change_rejected_by_database_constraint(
    client: AsyncClient,
    doctor_headers: dict,
    booked: dict,
    monkeypatch,
) -> None:
    def failing_update(table):
        raise IntegrityError("UPDATE appointments", {}, Exception("appointments_no_overlap"))

    monkeypatch.setattr(appointment_service, "update", failing_update)

    response = await client.patch(
        f"/api/v1/appointments/{booked['id']}/status",
        json={"status": "Completed"},
        headers=doctor_headers,
    )

    assert response.status_code == 400
    assert response.json()["error"] == "SlotConflictException"

    current = await client.get(f"/api/v1/appointments/{booked['id']}", headers=doctor_headers)
    assert current.json()["status_code"] == booked["status_code"]


@pytest.mark.asyncio
async def test_delete_requires_staff(
    client: AsyncClient,
    patient_headers: dict,
    admin_headers: dict,
    booked: dict,
) -> None:
    url = f"/api/v1/appointments/{booked['id']}"

    assert (await client.delete(url, headers=patient_headers)).status_code == 403
    assert (await client.delete(url, headers=admin_headers)).status_code == 204
    assert (await client.delete(url, headers=admin_headers)).status_code == 404


@pytest.mark.asyncio
async def test_cancelled_appointment_is_not_live(
    client: AsyncClient,
    db_session,
    doctor: dict,
    patient_headers: dict,
    booked: dict,
    monday,
) -> None:
    service = AppointmentService(db_session)
    day_start = datetime.combine(monday, time(0, 0), tzinfo=UTC)
    day_end = day_start + timedelta(days=1)
    assert await service.has_live_appointments_in_range(doctor["id"], day_start, day_end)

    await client.post(f"/api/v1/appointments/{booked['id']}/cancel", headers=patient_headers)

    assert not await service.has_live_appointments_in_range(doctor["id"], day_start, day_end)
