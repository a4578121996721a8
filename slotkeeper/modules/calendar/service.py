"""Calendar integration business logic layer."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from slotkeeper.core.config import get_settings
from slotkeeper.core.database import get_db_session
from slotkeeper.core.enums import CalendarProviderEnum
from slotkeeper.core.metrics import record_calendar_failure
from slotkeeper.modules.availability.slots import BusyInterval
from slotkeeper.modules.calendar.clients import CalendarClient, GoogleCalendarClient, MicrosoftCalendarClient
from slotkeeper.modules.calendar.models import CalendarConnection
from slotkeeper.modules.calendar.repository import CalendarRepository
from slotkeeper.modules.calendar.schemas import CalendarConnectionCreate
from slotkeeper.modules.identity.models import User
from slotkeeper.shared.exceptions import ConflictException, NotFoundException, UnauthorizedException
from slotkeeper.shared.utils import ensure_utc

settings = get_settings()
logger = logging.getLogger(__name__)

PROVIDER_CLIENTS: dict[CalendarProviderEnum, type[CalendarClient]] = {
    CalendarProviderEnum.GOOGLE: GoogleCalendarClient,
    CalendarProviderEnum.MICROSOFT: MicrosoftCalendarClient,
}


def build_client(connection: CalendarConnection) -> CalendarClient:
    client_cls = PROVIDER_CLIENTS[connection.provider]
    return client_cls(connection.access_token, timeout=settings.calendar_request_timeout_seconds)


class CalendarService:
    """External calendar connections, busy-time lookup and event push."""

    def __init__(
        self,
        repository: CalendarRepository,
        client_factory: Callable[[CalendarConnection], CalendarClient] = build_client,
    ) -> None:
        self.repository = repository
        self.client_factory = client_factory

    async def list_connections(self, actor: User) -> list[CalendarConnection]:
        return await self.repository.list_connections(actor.id)

    async def create_connection(self, payload: CalendarConnectionCreate, actor: User) -> CalendarConnection:
        account_email = str(payload.account_email) if payload.account_email is not None else None
        for existing in await self.repository.list_connections(actor.id):
            if existing.provider == payload.provider and existing.account_email == account_email:
                raise ConflictException("Calendar account is already connected")
        connection = await self.repository.create_connection(
            user_id=actor.id,
            provider=payload.provider,
            account_email=account_email,
            access_token=payload.access_token,
            token_expires_at=ensure_utc(payload.token_expires_at) if payload.token_expires_at is not None else None,
        )
        logger.info("Connected %s calendar for user %s", connection.provider, actor.id)
        return connection

    async def delete_connection(self, connection_id: UUID, actor: User) -> None:
        connection = await self.repository.get_connection_by_id(connection_id)
        if connection is None:
            raise NotFoundException("Calendar connection not found")
        if connection.user_id != actor.id:
            raise UnauthorizedException("You cannot manage this calendar connection")
        await self.repository.delete_connection(connection)

    async def get_busy_times(self, host_id: UUID, start_at: datetime, end_at: datetime) -> list[BusyInterval]:
        """Busy intervals from every active connection; a failing provider is skipped."""
        busy: list[BusyInterval] = []
        for connection in await self.repository.list_connections(host_id, active_only=True):
            try:
                busy.extend(await self.client_factory(connection).get_busy_times(start_at, end_at))
            except Exception as exc:
                record_calendar_failure(str(connection.provider))
                logger.warning(
                    "Skipping %s busy times for user %s: %s",
                    connection.provider,
                    host_id,
                    exc,
                )
        return busy

    async def create_event(
        self,
        host_id: UUID,
        *,
        summary: str,
        description: str,
        start_at: datetime,
        end_at: datetime,
    ) -> list[str]:
        """Push confirmed booking to every active connection, returning created event ids."""
        created: list[str] = []
        for connection in await self.repository.list_connections(host_id, active_only=True):
            try:
                event_id = await self.client_factory(connection).create_event(
                    summary=summary,
                    description=description,
                    start_at=start_at,
                    end_at=end_at,
                )
            except Exception:
                logger.exception("Failed to create %s event for user %s", connection.provider, host_id)
                continue
            if event_id:
                created.append(event_id)
        return created


async def get_calendar_service(session: AsyncSession = Depends(get_db_session)) -> CalendarService:
    """Dependency provider for calendar service."""
    return CalendarService(CalendarRepository(session))
