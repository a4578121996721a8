"""Identity schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from slotkeeper.shared.timewindows import get_zone

BOOKING_HORIZON_CHOICES = (7, 14, 21, 30, 90, 180, 365)


class UserCreate(BaseModel):
    """Host registration request."""

    email: EmailStr
    username: str = Field(min_length=3, max_length=64, pattern=r"^[a-z0-9][a-z0-9_-]*$")
    name: str = Field(min_length=1, max_length=128)
    password: str = Field(min_length=8, max_length=128)
    timezone: str = Field(default="UTC", max_length=64)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        get_zone(value)
        return value


class LoginRequest(BaseModel):
    """Credentials for login."""

    email: EmailStr
    password: str


class AccessToken(BaseModel):
    """Bearer token response."""

    access_token: str
    token_type: str = "bearer"


class UserRead(BaseModel):
    """User output schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: EmailStr
    username: str
    name: str
    timezone: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


class UserSettingsUpdate(BaseModel):
    """Scheduling preferences update; omitted fields are left untouched."""

    meeting_duration: int | None = Field(default=None, ge=15, le=240)
    buffer_minutes: int | None = Field(default=None, ge=0, le=60)
    booking_horizon_days: int | None = None

    @field_validator("booking_horizon_days")
    @classmethod
    def validate_horizon(cls, value: int | None) -> int | None:
        if value is not None and value not in BOOKING_HORIZON_CHOICES:
            raise ValueError(f"booking_horizon_days must be one of {BOOKING_HORIZON_CHOICES}")
        return value


class UserSettingsRead(BaseModel):
    """Scheduling preferences response."""

    model_config = ConfigDict(from_attributes=True)

    meeting_duration: int | None
    buffer_minutes: int | None
    booking_horizon_days: int
