"""Booking request schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from slotkeeper.core.enums import BookingRequestStatusEnum
from slotkeeper.modules.booking.schemas import BookingRead, CustomerFields


class BookingRequestCreate(CustomerFields):
    """Public booking request submitted from a host's booking page."""

    start_at: datetime
    end_at: datetime
    notes: str | None = Field(default=None, max_length=5000)
    event_type_id: UUID | None = None


class HostRejectRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=512)


class BookingRequestRead(BaseModel):
    """Booking request response; tokens are only ever delivered by notification."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    host_id: UUID
    event_type_id: UUID | None
    customer_name: str
    customer_email: str
    customer_phone: str | None
    start_at: datetime
    end_at: datetime
    notes: str | None
    status: BookingRequestStatusEnum
    expires_at: datetime
    host_approval_expires_at: datetime | None
    customer_confirmed_at: datetime | None
    host_decision_at: datetime | None
    cancellation_reason: str | None
    booking_id: UUID | None
    created_at: datetime


class BookingRequestOutcomeRead(BaseModel):
    """Result of confirming, approving or rejecting a booking request."""

    status: BookingRequestStatusEnum
    already_confirmed: bool = False
    requires_host_approval: bool = False
    request: BookingRequestRead
    booking: BookingRead | None = None
