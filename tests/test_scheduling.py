"""Tests for the pure availability rules."""

from datetime import UTC, date, datetime, time
from types import SimpleNamespace

import pytest

from medix.core.scheduling import (
    AvailabilitySource,
    day_of_week,
    free_slots,
    intervals_overlap,
    is_interval_available,
    resolve_availability,
)
from medix.schemas.doctor_schedules import OverrideType

MONDAY = date(2026, 11, 2)


def shift(day: int, start: time, end: time, available: bool = True) -> SimpleNamespace:
    return SimpleNamespace(day_of_week=day, start_time=start, end_time=end, is_available=available)


def override(
    on: date,
    start: time,
    end: time,
    available: bool,
    kind: OverrideType = OverrideType.BLOCK,
) -> SimpleNamespace:
    return SimpleNamespace(
        override_date=on,
        start_time=start,
        end_time=end,
        is_available=available,
        override_type=kind.value,
    )


def test_intervals_overlap_is_half_open():
    """Touching intervals do not overlap; any shared instant does."""
    assert not intervals_overlap(time(10), time(11), time(11), time(12))
    assert not intervals_overlap(time(11), time(12), time(10), time(11))
    assert intervals_overlap(time(10), time(11), time(10, 15), time(11, 15))
    assert intervals_overlap(time(9), time(12), time(10), time(11))


def test_day_of_week_starts_on_sunday():
    assert day_of_week(date(2026, 11, 1)) == 0  # Sunday
    assert day_of_week(MONDAY) == 1
    assert day_of_week(date(2026, 11, 7)) == 6  # Saturday


def test_recurring_schedule_governs_without_overrides():
    schedules = [shift(1, time(8), time(12))]

    inside = resolve_availability(MONDAY, time(9), schedules, [])
    assert inside.available is True
    assert inside.source == AvailabilitySource.RECURRING

    assert resolve_availability(MONDAY, time(12), schedules, []).available is False
    assert resolve_availability(MONDAY, time(7, 59), schedules, []).available is False


def test_override_replaces_whole_day():
    """An extra-hours override makes the recurring morning unavailable."""
    schedules = [shift(1, time(8), time(12))]
    overrides = [override(MONDAY, time(13), time(17), True, OverrideType.EXTRA)]

    morning = resolve_availability(MONDAY, time(9), schedules, overrides)
    afternoon = resolve_availability(MONDAY, time(14), schedules, overrides)

    assert morning.available is False
    assert morning.source == AvailabilitySource.OVERRIDE
    assert afternoon.available is True


def test_override_on_other_date_is_ignored():
    schedules = [shift(1, time(8), time(12))]
    overrides = [override(date(2026, 11, 9), time(8), time(12), False)]

    result = resolve_availability(MONDAY, time(9), schedules, overrides)
    assert result.available is True
    assert result.source == AvailabilitySource.RECURRING


def test_block_wins_over_available_row():
    overrides = [
        override(MONDAY, time(8), time(17), True, OverrideType.EXTRA),
        override(MONDAY, time(12), time(13), False),
    ]

    assert resolve_availability(MONDAY, time(12, 30), [], overrides).available is False
    assert resolve_availability(MONDAY, time(13), [], overrides).available is True


def test_vacation_closes_day():
    overrides = [
        override(MONDAY, time(0), time(23, 59, 59), False, OverrideType.VACATION),
    ]
    schedules = [shift(1, time(8), time(12))]

    assert resolve_availability(MONDAY, time(9), schedules, overrides).available is False
    assert not is_interval_available(MONDAY, time(9), time(10), schedules, overrides)
    assert free_slots(MONDAY, schedules, overrides, 30) == []


def test_interval_must_fit_in_one_available_row():
    schedules = [shift(1, time(8), time(12)), shift(1, time(13), time(17))]

    assert is_interval_available(MONDAY, time(10), time(11), schedules, [])
    assert is_interval_available(MONDAY, time(11), time(12), schedules, [])
    assert not is_interval_available(MONDAY, time(11, 30), time(13, 30), schedules, [])
    assert not is_interval_available(MONDAY, time(11), time(11), schedules, [])


def test_interval_touching_block_is_available():
    overrides = [
        override(MONDAY, time(8), time(17), True, OverrideType.EXTRA),
        override(MONDAY, time(12), time(13), False),
    ]

    assert is_interval_available(MONDAY, time(11), time(12), [], overrides)
    assert not is_interval_available(MONDAY, time(11, 30), time(12, 30), [], overrides)


def test_free_slots_skip_busy_and_blocked_time():
    schedules = [shift(1, time(8), time(10)), shift(1, time(9), time(9, 30), available=False)]
    busy = [
        (
            datetime(2026, 11, 2, 8, 30, tzinfo=UTC),
            datetime(2026, 11, 2, 9, 0, tzinfo=UTC),
        )
    ]

    slots = free_slots(MONDAY, schedules, [], 30, busy=busy, tz=UTC)

    assert [(s.time(), e.time()) for s, e in slots] == [
        (time(8), time(8, 30)),
        (time(9, 30), time(10)),
    ]


def test_free_slots_drop_partial_tail():
    schedules = [shift(1, time(8), time(9, 45))]

    slots = free_slots(MONDAY, schedules, [], 30)

    assert len(slots) == 3
    assert slots[-1][1].time() == time(9, 30)


def test_free_slots_rejects_non_positive_length():
    with pytest.raises(ValueError):
        free_slots(MONDAY, [], [], 0)
