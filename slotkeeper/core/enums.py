"""Core enums used across modules."""

from enum import StrEnum


class BookingStatusEnum(StrEnum):
    """Booking lifecycle status."""

    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class BookingRequestStatusEnum(StrEnum):
    """Booking request (tentative hold) lifecycle status."""

    PENDING = "pending"
    PENDING_HOST_APPROVAL = "pending_host_approval"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class CalendarProviderEnum(StrEnum):
    """Supported external calendar providers."""

    GOOGLE = "google"
    MICROSOFT = "microsoft"


class NotificationStatusEnum(StrEnum):
    """Notification delivery status."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class OutboxStatusEnum(StrEnum):
    """Outbox event status for integration publishing."""

    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"
