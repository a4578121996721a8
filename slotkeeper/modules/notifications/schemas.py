"""Notifications schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from slotkeeper.core.enums import NotificationStatusEnum


class NotificationRead(BaseModel):
    """Notification response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID | None
    recipient_email: str
    channel: str
    title: str
    body: str
    source_event: str | None
    status: NotificationStatusEnum
    sent_at: datetime | None
    created_at: datetime
