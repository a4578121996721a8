"""Notifications business logic layer."""

from __future__ import annotations

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from slotkeeper.core.database import get_db_session
from slotkeeper.modules.identity.models import User
from slotkeeper.modules.notifications.models import Notification
from slotkeeper.modules.notifications.repository import NotificationsRepository


class NotificationsService:
    """Notifications domain service."""

    def __init__(self, repository: NotificationsRepository) -> None:
        self.repository = repository

    async def list_my_notifications(self, actor: User, limit: int, offset: int) -> tuple[list[Notification], int]:
        """List notifications addressed to current host."""
        return await self.repository.list_notifications_for_user(actor.id, limit, offset)


async def get_notifications_service(session: AsyncSession = Depends(get_db_session)) -> NotificationsService:
    """Dependency provider for notifications service."""
    return NotificationsService(NotificationsRepository(session))
