"""Notifications ORM models."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from slotkeeper.core.database import Base, BaseModelMixin, enum_values
from slotkeeper.core.enums import NotificationStatusEnum


class Notification(BaseModelMixin, Base):
    """Message materialised from an outbox event, addressed to a host or a customer."""

    __tablename__ = "notifications"

    user_id: Mapped[UUID | None] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    recipient_email: Mapped[str] = mapped_column(String(255), nullable=False)
    channel: Mapped[str] = mapped_column(String(32), default="email", nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    source_event: Mapped[str | None] = mapped_column(String(128), nullable=True)
    status: Mapped[NotificationStatusEnum] = mapped_column(
        SAEnum(
            NotificationStatusEnum,
            name="notification_status_enum",
            native_enum=False,
            values_callable=enum_values,
        ),
        default=NotificationStatusEnum.PENDING,
        nullable=False,
        index=True,
    )
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
