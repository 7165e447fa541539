"""Tests for recurring schedules and their cache."""

import json
from unittest.mock import MagicMock

import pytest
from httpx import AsyncClient

from medix.core.redis_client import CacheManager

SCHEDULES_URL = "/api/v1/doctor-schedules/me"


def test_cache_manager_fails_open():
    """A Redis error reads as a miss and never raises."""
    redis_client = MagicMock()
    redis_client.get.side_effect = ConnectionError("redis down")
    redis_client.setex.side_effect = ConnectionError("redis down")
    cache_manager = CacheManager(redis_client=redis_client)

    assert cache_manager.get_json("doctor_schedules:x") is None
    assert cache_manager.set_json("doctor_schedules:x", [], ttl=60) is False


def test_cache_manager_round_trip():
    redis_client = MagicMock()
    cache_manager = CacheManager(redis_client=redis_client)

    assert cache_manager.set_json("key", {"a": 1}, ttl=300) is True
    redis_client.setex.assert_called_once_with("key", 300, json.dumps({"a": 1}))

    redis_client.get.return_value = '{"a": 1}'
    assert cache_manager.get_json("key") == {"a": 1}


@pytest.mark.asyncio
async def test_create_and_list_schedule(
    client: AsyncClient,
    doctor: dict,
    doctor_headers: dict,
    mock_redis: MagicMock,
) -> None:
    response = await client.post(
        SCHEDULES_URL,
        json={"day_of_week": 1, "start_time": "08:00", "end_time": "12:00"},
        headers=doctor_headers,
    )

    assert response.status_code == 201
    assert response.json()["is_available"] is True
    mock_redis.delete.assert_called_with(f"doctor_schedules:{doctor['id']}")

    listing = await client.get(f"/api/v1/doctor-schedules/doctor/{doctor['id']}")
    assert listing.status_code == 200
    assert [(row["day_of_week"], row["start_time"]) for row in listing.json()] == [
        (1, "08:00:00")
    ]
    mock_redis.setex.assert_called()


@pytest.mark.asyncio
async def test_cached_schedule_is_served(
    client: AsyncClient,
    doctor: dict,
    mock_redis: MagicMock,
) -> None:
    cached = [
        {
            "id": "7c9e6679-7425-40de-944b-e07fc1f90ae7",
            "doctor_id": str(doctor["id"]),
            "day_of_week": 3,
            "start_time": "14:00:00",
            "end_time": "18:00:00",
            "is_available": True,
            "created_at": "2026-01-01T00:00:00Z",
            "updated_at": "2026-01-01T00:00:00Z",
        }
    ]
    mock_redis.get.return_value = json.dumps(cached)

    response = await client.get(f"/api/v1/doctor-schedules/doctor/{doctor['id']}")

    assert response.status_code == 200
    assert response.json()[0]["day_of_week"] == 3


@pytest.mark.asyncio
async def test_overlapping_shift_is_rejected(
    client: AsyncClient,
    doctor_headers: dict,
    monday_schedule: dict,
) -> None:
    response = await client.post(
        SCHEDULES_URL,
        json={"day_of_week": 1, "start_time": "11:00", "end_time": "13:00"},
        headers=doctor_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"] == "ScheduleOverlapException"

    touching = await client.post(
        SCHEDULES_URL,
        json={"day_of_week": 1, "start_time": "12:00", "end_time": "13:00"},
        headers=doctor_headers,
    )
    assert touching.status_code == 201

    other_day = await client.post(
        SCHEDULES_URL,
        json={"day_of_week": 2, "start_time": "11:00", "end_time": "13:00"},
        headers=doctor_headers,
    )
    assert other_day.status_code == 201


@pytest.mark.asyncio
async def test_invalid_shift_is_rejected(client: AsyncClient, doctor_headers: dict) -> None:
    for payload in (
        {"day_of_week": 7, "start_time": "08:00", "end_time": "12:00"},
        {"day_of_week": 1, "start_time": "12:00", "end_time": "08:00"},
    ):
        response = await client.post(SCHEDULES_URL, json=payload, headers=doctor_headers)
        assert response.status_code == 422


@pytest.mark.asyncio
async def test_update_and_delete_shift(
    client: AsyncClient,
    doctor_headers: dict,
    monday_schedule: dict,
) -> None:
    url = f"{SCHEDULES_URL}/{monday_schedule['id']}"

    updated = await client.put(url, json={"end_time": "13:00"}, headers=doctor_headers)
    assert updated.status_code == 200
    assert updated.json()["end_time"] == "13:00:00"

    inverted = await client.put(url, json={"start_time": "14:00"}, headers=doctor_headers)
    assert inverted.status_code == 400

    assert (await client.delete(url, headers=doctor_headers)).status_code == 204
    assert (await client.delete(url, headers=doctor_headers)).status_code == 404


@pytest.mark.asyncio
async def test_replace_schedule(
    client: AsyncClient,
    doctor_headers: dict,
    monday_schedule: dict,
) -> None:
    response = await client.put(
        SCHEDULES_URL,
        json={
            "schedules": [
                {
                    "id": str(monday_schedule["id"]),
                    "day_of_week": 1,
                    "start_time": "09:00",
                    "end_time": "12:00",
                },
                {"day_of_week": 3, "start_time": "13:00", "end_time": "17:00"},
            ]
        },
        headers=doctor_headers,
    )

    assert response.status_code == 200
    rows = response.json()
    assert [(row["day_of_week"], row["start_time"]) for row in rows] == [
        (1, "09:00:00"),
        (3, "13:00:00"),
    ]
    assert rows[0]["id"] == str(monday_schedule["id"])


@pytest.mark.asyncio
async def test_replace_schedule_rejects_overlap(
    client: AsyncClient,
    doctor_headers: dict,
) -> None:
    response = await client.put(
        SCHEDULES_URL,
        json={
            "schedules": [
                {"day_of_week": 1, "start_time": "08:00", "end_time": "12:00"},
                {"day_of_week": 1, "start_time": "11:00", "end_time": "14:00"},
            ]
        },
        headers=doctor_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_patient_has_no_schedule(client: AsyncClient, patient_headers: dict) -> None:
    response = await client.get(SCHEDULES_URL, headers=patient_headers)
    assert response.status_code == 404
