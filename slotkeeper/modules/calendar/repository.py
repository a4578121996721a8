"""Calendar connection repository layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from slotkeeper.core.enums import CalendarProviderEnum
from slotkeeper.modules.calendar.models import CalendarConnection


class CalendarRepository:
    """DB operations for external calendar connections."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_connection(
        self,
        user_id: UUID,
        provider: CalendarProviderEnum,
        account_email: str | None,
        access_token: str,
        token_expires_at: datetime | None,
    ) -> CalendarConnection:
        connection = CalendarConnection(
            user_id=user_id,
            provider=provider,
            account_email=account_email,
            access_token=access_token,
            token_expires_at=token_expires_at,
        )
        self.session.add(connection)
        await self.session.flush()
        return connection

    async def get_connection_by_id(self, connection_id: UUID) -> CalendarConnection | None:
        stmt = select(CalendarConnection).where(CalendarConnection.id == connection_id)
        return await self.session.scalar(stmt)

    async def list_connections(self, user_id: UUID, *, active_only: bool = False) -> list[CalendarConnection]:
        stmt = select(CalendarConnection).where(CalendarConnection.user_id == user_id)
        if active_only:
            stmt = stmt.where(CalendarConnection.is_active.is_(True))
        stmt = stmt.order_by(CalendarConnection.created_at.asc())
        return (await self.session.scalars(stmt)).all()

    async def delete_connection(self, connection: CalendarConnection) -> None:
        await self.session.delete(connection)
        await self.session.flush()
