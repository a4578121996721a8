"""Identity ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from slotkeeper.core.database import Base, BaseModelMixin

if TYPE_CHECKING:
    from slotkeeper.modules.availability.models import AvailabilityRule
    from slotkeeper.modules.booking.models import Booking


class User(BaseModelMixin, Base):
    """Host account that owns availability and receives bookings."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    username: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), default="UTC", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    settings: Mapped["UserSettings | None"] = relationship(
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )
    availability_rules: Mapped[list["AvailabilityRule"]] = relationship(back_populates="user")
    bookings: Mapped[list["Booking"]] = relationship(back_populates="host")


class UserSettings(BaseModelMixin, Base):
    """Per-host scheduling preferences."""

    __tablename__ = "user_settings"
    __table_args__ = (
        CheckConstraint(
            "meeting_duration IS NULL OR meeting_duration BETWEEN 15 AND 240",
            name="meeting_duration_range",
        ),
        CheckConstraint(
            "buffer_minutes IS NULL OR buffer_minutes BETWEEN 0 AND 60",
            name="buffer_minutes_range",
        ),
    )

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    meeting_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    buffer_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    booking_horizon_days: Mapped[int] = mapped_column(Integer, default=30, nullable=False)

    user: Mapped[User] = relationship(back_populates="settings")
