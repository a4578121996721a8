"""Event type business logic layer."""

from __future__ import annotations

import re
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from slotkeeper.core.database import get_db_session
from slotkeeper.modules.event_types.models import EventType
from slotkeeper.modules.event_types.repository import EventTypesRepository
from slotkeeper.modules.event_types.schemas import EventTypeCreate, EventTypeUpdate
from slotkeeper.modules.identity.models import User
from slotkeeper.shared.exceptions import ConflictException, NotFoundException, UnauthorizedException, ValidationException


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-")
    return slug or "event"


class EventTypesService:
    """Event type domain service."""

    def __init__(self, repository: EventTypesRepository) -> None:
        self.repository = repository

    async def _unique_slug(self, user_id: UUID, base_slug: str) -> str:
        slug = base_slug
        counter = 1
        while await self.repository.slug_exists(user_id, slug):
            slug = f"{base_slug}-{counter}"
            counter += 1
        return slug

    async def create_event_type(self, payload: EventTypeCreate, actor: User) -> EventType:
        """Create event type; derive a unique slug from the name when none is given."""
        if payload.slug is not None:
            if await self.repository.slug_exists(actor.id, payload.slug):
                raise ConflictException("Event type slug already exists")
            slug = payload.slug
        else:
            slug = await self._unique_slug(actor.id, slugify(payload.name))

        return await self.repository.create_event_type(
            user_id=actor.id,
            slug=slug,
            **payload.model_dump(exclude={"slug"}),
        )

    async def get_owned(self, event_type_id: UUID, actor: User) -> EventType:
        event_type = await self.repository.get_event_type_by_id(event_type_id)
        if event_type is None:
            raise NotFoundException("Event type not found")
        if event_type.user_id != actor.id:
            raise UnauthorizedException("You cannot manage this event type")
        return event_type

    async def find_event_type(self, event_type_id: UUID) -> EventType | None:
        return await self.repository.get_event_type_by_id(event_type_id)

    async def get_bookable(self, event_type_id: UUID, host_id: UUID) -> EventType:
        """Return active event type of host, used when computing slots or holds."""
        event_type = await self.repository.get_event_type_by_id(event_type_id)
        if event_type is None or event_type.user_id != host_id:
            raise NotFoundException("Event type not found")
        if not event_type.is_active:
            raise ValidationException("Event type is not active")
        return event_type

    async def update_event_type(self, event_type_id: UUID, payload: EventTypeUpdate, actor: User) -> EventType:
        event_type = await self.get_owned(event_type_id, actor)
        return await self.repository.update_event_type(event_type, **payload.model_dump(exclude_none=True))

    async def delete_event_type(self, event_type_id: UUID, actor: User) -> None:
        event_type = await self.get_owned(event_type_id, actor)
        await self.repository.delete_event_type(event_type)

    async def list_event_types(self, actor: User, limit: int, offset: int) -> tuple[list[EventType], int]:
        return await self.repository.list_event_types(actor.id, limit, offset)


async def get_event_types_service(session: AsyncSession = Depends(get_db_session)) -> EventTypesService:
    """Dependency provider for event types service."""
    return EventTypesService(EventTypesRepository(session))
