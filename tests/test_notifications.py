"""Tests for push tokens and notification history."""

from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from medix.models import push_tokens
from medix.schemas.notifications import NotificationType
from medix.services.notification_service import NotificationService


@pytest.mark.asyncio
async def test_register_token(
    client: AsyncClient,
    db_session,
    patient_headers: dict,
) -> None:
    first = await client.post(
        "/api/v1/notifications/register-token",
        json={"fcm_token": "token-one", "platform": "android"},
        headers=patient_headers,
    )
    second = await client.post(
        "/api/v1/notifications/register-token",
        json={"fcm_token": "token-two", "platform": "android"},
        headers=patient_headers,
    )

    assert first.status_code == 201
    assert second.status_code == 201

    result = await db_session.execute(select(push_tokens.c.fcm_token, push_tokens.c.is_active))
    assert dict(result.all()) == {"token-one": False, "token-two": True}


@pytest.mark.asyncio
async def test_register_token_rejects_unknown_platform(
    client: AsyncClient,
    patient_headers: dict,
) -> None:
    response = await client.post(
        "/api/v1/notifications/register-token",
        json={"fcm_token": "token", "platform": "desktop"},
        headers=patient_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_send_to_user_without_devices(db_session, patient_user: dict) -> None:
    record = await NotificationService.send_to_user(
        db_session, patient_user["id"], "Hello", "World"
    )

    assert record["status"] == "failed"
    assert record["failure_reason"] == "No active tokens for user"


@pytest.mark.asyncio
async def test_send_to_user_delivers_push(db_session, patient_user: dict) -> None:
    await NotificationService.register_token(db_session, patient_user["id"], "token", "ios")

    response = MagicMock(success_count=1, failure_count=0)
    with (
        patch("medix.services.notification_service.is_firebase_initialized", return_value=True),
        patch(
            "medix.services.notification_service.messaging.send_each_for_multicast",
            return_value=response,
        ) as send,
    ):
        record = await NotificationService.send_to_user(
            db_session,
            patient_user["id"],
            "Appointment Confirmed",
            "See you Monday",
            notification_type=NotificationType.APPOINTMENT_CONFIRMATION,
            data={"screen": "/appointments"},
        )

    send.assert_called_once()
    assert record["status"] == "delivered"
    assert record["sent_at"] is not None


@pytest.mark.asyncio
async def test_history_and_mark_read(
    client: AsyncClient,
    db_session,
    patient_user: dict,
    patient_headers: dict,
) -> None:
    record = await NotificationService.send_to_user(
        db_session, patient_user["id"], "Reminder", "Tomorrow at 10:00"
    )

    history = await client.get("/api/v1/notifications/history", headers=patient_headers)
    assert history.status_code == 200
    assert history.json()["total"] == 1
    assert history.json()["notifications"][0]["title"] == "Reminder"

    read = await client.patch(
        f"/api/v1/notifications/{record['id']}/read", headers=patient_headers
    )
    assert read.status_code == 204

    missing = await client.patch(f"/api/v1/notifications/{uuid4()}/read", headers=patient_headers)
    assert missing.status_code == 404
