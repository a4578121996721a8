"""Booking schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from slotkeeper.core.enums import BookingStatusEnum


class CustomerFields(BaseModel):
    """Customer contact details shared by bookings and booking requests."""

    customer_name: str = Field(min_length=1, max_length=100)
    customer_email: EmailStr
    customer_phone: str | None = Field(default=None, max_length=25)


class BookingCreate(CustomerFields):
    """Direct booking created by the host."""

    start_at: datetime
    end_at: datetime
    notes: str | None = Field(default=None, max_length=5000)
    event_type_id: UUID | None = None


class BookingCancelRequest(BaseModel):
    """Cancel booking request."""

    reason: str | None = Field(default=None, max_length=512)


class BookingRead(BaseModel):
    """Booking response schema."""

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
    status: BookingStatusEnum
    cancelled_at: datetime | None
    cancellation_reason: str | None
    created_at: datetime
    updated_at: datetime
