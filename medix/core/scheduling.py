"""
Pure time-range and availability rules.

Nothing here touches the database: services load schedule rows, override rows
and appointments, then ask these functions for the answer. Rows only need
``start_time``, ``end_time`` and ``is_available`` attributes; schedule rows add
``day_of_week`` and override rows add ``override_date`` and ``override_type``.

Governing rows for a date:
    * if any override row exists on that date, the override rows alone govern
      the whole day;
    * otherwise the recurring rows of the date's weekday govern.

Within the governing rows a point or interval is available when it lies inside
an available row and touches no blocked row. A vacation override closes the
whole day.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from enum import Enum
from typing import Any

from medix.schemas.doctor_schedules import OverrideType


class AvailabilitySource(str, Enum):
    """Which set of rows decided an availability answer."""

    RECURRING = "recurring"
    OVERRIDE = "override"


@dataclass(frozen=True)
class Availability:
    available: bool
    source: AvailabilitySource


def intervals_overlap(a_start: Any, a_end: Any, b_start: Any, b_end: Any) -> bool:
    """Half-open overlap: ``[a_start, a_end)`` and ``[b_start, b_end)`` share a point."""
    return a_start < b_end and a_end > b_start


def day_of_week(value: date) -> int:
    """Weekday number with 0 = Sunday ... 6 = Saturday."""
    return (value.weekday() + 1) % 7


def select_rules(
    target_date: date,
    schedules: Iterable[Any],
    overrides: Iterable[Any],
) -> tuple[list[Any], AvailabilitySource]:
    """Return the governing rows for ``target_date`` and where they came from."""
    day_overrides = [row for row in overrides if row.override_date == target_date]
    if day_overrides:
        return day_overrides, AvailabilitySource.OVERRIDE

    weekday = day_of_week(target_date)
    return [row for row in schedules if row.day_of_week == weekday], AvailabilitySource.RECURRING


def _is_vacation(row: Any) -> bool:
    return getattr(row, "override_type", None) == OverrideType.VACATION


def resolve_availability(
    target_date: date,
    at: time,
    schedules: Iterable[Any],
    overrides: Iterable[Any],
) -> Availability:
    """Whether the doctor is available at ``at`` on ``target_date``."""
    rules, source = select_rules(target_date, schedules, overrides)
    if any(_is_vacation(row) for row in rules):
        return Availability(False, source)

    covered = False
    blocked = False
    for row in rules:
        if row.start_time <= at < row.end_time:
            if row.is_available:
                covered = True
            else:
                blocked = True

    return Availability(covered and not blocked, source)


def is_interval_available(
    target_date: date,
    start: time,
    end: time,
    schedules: Iterable[Any],
    overrides: Iterable[Any],
) -> bool:
    """
    Whether ``[start, end)`` on ``target_date`` fits inside one available row
    and overlaps no blocked row of the governing set.
    """
    if start >= end:
        return False

    rules, _ = select_rules(target_date, schedules, overrides)
    if any(_is_vacation(row) for row in rules):
        return False

    inside = any(
        row.is_available and row.start_time <= start and end <= row.end_time for row in rules
    )
    if not inside:
        return False

    return not any(
        not row.is_available and intervals_overlap(start, end, row.start_time, row.end_time)
        for row in rules
    )


def free_slots(
    target_date: date,
    schedules: Iterable[Any],
    overrides: Iterable[Any],
    slot_minutes: int,
    busy: Sequence[tuple[datetime, datetime]] = (),
    tz: tzinfo | None = None,
) -> list[tuple[datetime, datetime]]:
    """
    Consecutive slots of ``slot_minutes`` inside each available governing row.

    Slots touching a blocked row or overlapping a ``busy`` interval are left
    out. Slot datetimes are built in ``tz``; ``busy`` must be comparable with
    them (both aware or both naive).
    """
    if slot_minutes <= 0:
        raise ValueError("slot_minutes must be positive")

    rules, _ = select_rules(target_date, schedules, overrides)
    if any(_is_vacation(row) for row in rules):
        return []

    step = timedelta(minutes=slot_minutes)
    blocked = [
        (
            datetime.combine(target_date, row.start_time, tzinfo=tz),
            datetime.combine(target_date, row.end_time, tzinfo=tz),
        )
        for row in rules
        if not row.is_available
    ]
    taken = [*blocked, *busy]

    slots: list[tuple[datetime, datetime]] = []
    seen: set[datetime] = set()
    for row in sorted((r for r in rules if r.is_available), key=lambda r: r.start_time):
        cursor = datetime.combine(target_date, row.start_time, tzinfo=tz)
        row_end = datetime.combine(target_date, row.end_time, tzinfo=tz)
        while cursor + step <= row_end:
            slot_end = cursor + step
            if cursor not in seen and not any(
                intervals_overlap(cursor, slot_end, t_start, t_end) for t_start, t_end in taken
            ):
                slots.append((cursor, slot_end))
                seen.add(cursor)
            cursor = slot_end

    slots.sort()
    return slots
