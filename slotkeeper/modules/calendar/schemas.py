"""Calendar connection schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from slotkeeper.core.enums import CalendarProviderEnum


class CalendarConnectionCreate(BaseModel):
    """Register an already authorised provider access token."""

    provider: CalendarProviderEnum
    account_email: EmailStr | None = None
    access_token: str = Field(min_length=1)
    token_expires_at: datetime | None = None


class CalendarConnectionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    provider: CalendarProviderEnum
    account_email: str | None
    token_expires_at: datetime | None
    is_active: bool
    created_at: datetime
