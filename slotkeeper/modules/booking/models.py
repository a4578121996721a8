"""Booking ORM models."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, Enum as SAEnum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from slotkeeper.core.database import Base, BaseModelMixin, enum_values
from slotkeeper.core.enums import BookingStatusEnum

if TYPE_CHECKING:
    from slotkeeper.modules.identity.models import User

# Created by the initial migration (needs btree_gist); referenced when mapping
# integrity errors back to a taken time slot.
CONFIRMED_OVERLAP_CONSTRAINT = "ex_bookings_host_confirmed_overlap"


class Booking(BaseModelMixin, Base):
    """Confirmed appointment between a host and a customer."""

    __tablename__ = "bookings"
    __table_args__ = (CheckConstraint("end_at > start_at", name="time_range"),)

    host_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    event_type_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("event_types.id", ondelete="SET NULL"),
        nullable=True,
    )
    customer_name: Mapped[str] = mapped_column(String(100), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[str | None] = mapped_column(String(25), nullable=True)
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[BookingStatusEnum] = mapped_column(
        SAEnum(
            BookingStatusEnum,
            name="booking_status_enum",
            native_enum=False,
            values_callable=enum_values,
        ),
        default=BookingStatusEnum.CONFIRMED,
        nullable=False,
        index=True,
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(String(512), nullable=True)

    host: Mapped["User"] = relationship(back_populates="bookings")
