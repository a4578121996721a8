"""Event type schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


class EventTypeCreate(BaseModel):
    """Create event type request."""

    name: str = Field(min_length=1, max_length=100)
    slug: str | None = Field(default=None, max_length=100, pattern=SLUG_PATTERN)
    description: str | None = None
    duration_minutes: int = Field(default=30, ge=5, le=480)
    requires_confirmation: bool = False
    minimum_notice_minutes: int = Field(default=120, ge=0, le=20160)
    maximum_advance_minutes: int = Field(default=43200, ge=1440, le=525600)


class EventTypeUpdate(BaseModel):
    """Partial event type update."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    duration_minutes: int | None = Field(default=None, ge=5, le=480)
    requires_confirmation: bool | None = None
    minimum_notice_minutes: int | None = Field(default=None, ge=0, le=20160)
    maximum_advance_minutes: int | None = Field(default=None, ge=1440, le=525600)
    is_active: bool | None = None


class EventTypeRead(BaseModel):
    """Event type response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    name: str
    slug: str
    description: str | None
    duration_minutes: int
    requires_confirmation: bool
    minimum_notice_minutes: int
    maximum_advance_minutes: int
    is_active: bool
    created_at: datetime
    updated_at: datetime
