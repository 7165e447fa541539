"""Schemas for recurring schedules, date overrides and availability."""

from datetime import date, time
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from medix.schemas.common import UTCDateTime

WHOLE_DAY_START = time(0, 0)
WHOLE_DAY_END = time(23, 59, 59)


class OverrideType(str, Enum):
    """Kind of date override."""

    BLOCK = "block"
    EXTRA = "extra"
    VACATION = "vacation"


def _check_range(start: time | None, end: time | None) -> None:
    if start is not None and end is not None and start >= end:
        raise ValueError("start_time must be before end_time")


class ScheduleBase(BaseModel):
    """Fields shared by schedule create and replace payloads."""

    day_of_week: int = Field(..., ge=0, le=6, description="0 = Sunday ... 6 = Saturday")
    start_time: time
    end_time: time
    is_available: bool = True

    @model_validator(mode="after")
    def validate_time_range(self) -> "ScheduleBase":
        """Validate start time is before end time."""
        _check_range(self.start_time, self.end_time)
        return self


class ScheduleCreate(ScheduleBase):
    """Schema for adding one recurring shift."""


class ScheduleUpdate(BaseModel):
    """Schema for editing one recurring shift."""

    day_of_week: int | None = Field(None, ge=0, le=6)
    start_time: time | None = None
    end_time: time | None = None
    is_available: bool | None = None

    @model_validator(mode="after")
    def validate_time_range(self) -> "ScheduleUpdate":
        """Validate start time is before end time when both are given."""
        _check_range(self.start_time, self.end_time)
        return self


class ScheduleReplaceItem(ScheduleBase):
    """One shift of a bulk replace; rows with an id are updated in place."""

    id: UUID | None = None


class ScheduleReplaceRequest(BaseModel):
    """Schema for replacing a doctor's whole weekly schedule."""

    schedules: list[ScheduleReplaceItem]


class ScheduleResponse(BaseModel):
    """Schema for schedule response."""

    id: UUID
    doctor_id: UUID
    day_of_week: int
    start_time: time
    end_time: time
    is_available: bool
    created_at: UTCDateTime
    updated_at: UTCDateTime

    model_config = {"from_attributes": True}


class OverrideCreate(BaseModel):
    """
    Schema for creating a date override.

    ``is_available`` defaults from the type: ``extra`` opens time, ``block``
    and ``vacation`` close it. A vacation covers the whole day, so its times
    may be omitted.
    """

    override_date: date
    start_time: time | None = None
    end_time: time | None = None
    is_available: bool | None = None
    override_type: OverrideType = OverrideType.BLOCK
    reason: str | None = Field(None, max_length=500)

    @model_validator(mode="before")
    @classmethod
    def fill_defaults(cls, data: Any) -> Any:
        """Derive availability and whole-day times from the override type."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        override_type = data.get("override_type") or OverrideType.BLOCK.value
        override_type = OverrideType(override_type)

        if data.get("is_available") is None:
            data["is_available"] = override_type == OverrideType.EXTRA

        if override_type == OverrideType.VACATION:
            if data["is_available"]:
                raise ValueError("A vacation override cannot be available")
            if data.get("start_time") is None:
                data["start_time"] = WHOLE_DAY_START
            if data.get("end_time") is None:
                data["end_time"] = WHOLE_DAY_END
        return data

    @model_validator(mode="after")
    def validate_time_range(self) -> "OverrideCreate":
        """Validate both times are set and ordered."""
        if self.start_time is None or self.end_time is None:
            raise ValueError("start_time and end_time are required")
        _check_range(self.start_time, self.end_time)
        return self


class OverrideUpdate(BaseModel):
    """Schema for editing a date override."""

    override_date: date | None = None
    start_time: time | None = None
    end_time: time | None = None
    is_available: bool | None = None
    override_type: OverrideType | None = None
    reason: str | None = Field(None, max_length=500)

    @model_validator(mode="after")
    def validate_fields(self) -> "OverrideUpdate":
        """Validate the fields that can be checked without the stored row."""
        _check_range(self.start_time, self.end_time)
        if self.override_type == OverrideType.VACATION and self.is_available:
            raise ValueError("A vacation override cannot be available")
        return self


class OverrideResponse(BaseModel):
    """Schema for override response."""

    id: UUID
    doctor_id: UUID
    override_date: date
    start_time: time
    end_time: time
    is_available: bool
    override_type: OverrideType
    reason: str | None = None
    created_at: UTCDateTime
    updated_at: UTCDateTime

    model_config = {"from_attributes": True}


class AvailabilityResponse(BaseModel):
    """Resolved availability of a doctor at one date and time."""

    doctor_id: UUID
    date: date
    time: time
    available: bool
    source: str


class AvailableSlot(BaseModel):
    """A bookable slot."""

    start: UTCDateTime
    end: UTCDateTime


class AvailableSlotsResponse(BaseModel):
    """Free slots of a doctor on one date."""

    doctor_id: UUID
    date: date
    slot_minutes: int
    slots: list[AvailableSlot]
