"""Event type repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from slotkeeper.modules.event_types.models import EventType


class EventTypesRepository:
    """DB operations for event types."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_event_type(self, user_id: UUID, slug: str, **fields) -> EventType:
        event_type = EventType(user_id=user_id, slug=slug, **fields)
        self.session.add(event_type)
        await self.session.flush()
        return event_type

    async def get_event_type_by_id(self, event_type_id: UUID) -> EventType | None:
        stmt = select(EventType).where(EventType.id == event_type_id)
        return await self.session.scalar(stmt)

    async def slug_exists(self, user_id: UUID, slug: str) -> bool:
        stmt = select(func.count()).select_from(EventType).where(
            EventType.user_id == user_id,
            EventType.slug == slug,
        )
        return bool(await self.session.scalar(stmt))

    async def list_event_types(self, user_id: UUID, limit: int, offset: int) -> tuple[list[EventType], int]:
        base_stmt: Select[tuple[EventType]] = select(EventType).where(EventType.user_id == user_id)
        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(EventType.created_at.asc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total

    async def update_event_type(self, event_type: EventType, **changes) -> EventType:
        for key, value in changes.items():
            if value is not None:
                setattr(event_type, key, value)
        await self.session.flush()
        return event_type

    async def delete_event_type(self, event_type: EventType) -> None:
        await self.session.delete(event_type)
        await self.session.flush()
