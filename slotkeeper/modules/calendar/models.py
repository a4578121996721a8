"""External calendar connection ORM models."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from slotkeeper.core.database import Base, BaseModelMixin, enum_values
from slotkeeper.core.enums import CalendarProviderEnum


class CalendarConnection(BaseModelMixin, Base):
    """Host's link to an external calendar account."""

    __tablename__ = "calendar_connections"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "provider",
            "account_email",
            name="uq_calendar_connections_user_provider_account",
        ),
    )

    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    provider: Mapped[CalendarProviderEnum] = mapped_column(
        SAEnum(
            CalendarProviderEnum,
            name="calendar_provider_enum",
            native_enum=False,
            values_callable=enum_values,
        ),
        nullable=False,
    )
    account_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    token_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
