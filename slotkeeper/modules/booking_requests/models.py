"""Booking request ORM models."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, Enum as SAEnum, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from slotkeeper.core.database import Base, BaseModelMixin, enum_values
from slotkeeper.core.enums import BookingRequestStatusEnum


class BookingRequest(BaseModelMixin, Base):
    """Tentative hold on a time range, awaiting customer and optionally host confirmation."""

    __tablename__ = "booking_requests"
    __table_args__ = (
        CheckConstraint("end_at > start_at", name="time_range"),
        Index("ix_booking_requests_host_status_start", "host_id", "status", "start_at"),
    )

    host_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    event_type_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("event_types.id", ondelete="SET NULL"),
        nullable=True,
    )
    customer_name: Mapped[str] = mapped_column(String(100), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[str | None] = mapped_column(String(25), nullable=True)
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    confirmation_token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    host_approval_token: Mapped[str | None] = mapped_column(String(128), unique=True, nullable=True)
    host_approval_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    status: Mapped[BookingRequestStatusEnum] = mapped_column(
        SAEnum(
            BookingRequestStatusEnum,
            name="booking_request_status_enum",
            native_enum=False,
            values_callable=enum_values,
        ),
        default=BookingRequestStatusEnum.PENDING,
        nullable=False,
    )
    customer_confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    host_decision_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(String(512), nullable=True)
    booking_id: Mapped[UUID | None] = mapped_column(ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)
