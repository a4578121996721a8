"""Availability schemas."""

from __future__ import annotations

from datetime import date, datetime, time
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class AvailabilityRuleCreate(BaseModel):
    """Create availability rule request."""

    day_of_week: int = Field(ge=0, le=6, description="0 = Sunday ... 6 = Saturday")
    start_time: time
    end_time: time
    buffer_minutes: int = Field(default=0, ge=0, le=240)
    max_bookings_per_day: int | None = Field(default=None, ge=1)


class AvailabilityRuleUpdate(BaseModel):
    """Partial availability rule update."""

    day_of_week: int | None = Field(default=None, ge=0, le=6)
    start_time: time | None = None
    end_time: time | None = None
    buffer_minutes: int | None = Field(default=None, ge=0, le=240)
    max_bookings_per_day: int | None = Field(default=None, ge=1)


class AvailabilityRuleRead(BaseModel):
    """Availability rule response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    day_of_week: int
    start_time: time
    end_time: time
    buffer_minutes: int
    max_bookings_per_day: int | None
    created_at: datetime
    updated_at: datetime


class SlotRead(BaseModel):
    """Bookable window in UTC."""

    model_config = ConfigDict(from_attributes=True)

    start: datetime
    end: datetime


class HostSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    username: str


class AvailableSlotsRead(BaseModel):
    """Slots computed for one host and date."""

    date: date
    timezone: str
    duration_minutes: int
    slots: list[SlotRead]
    host: HostSummary | None = None
