"""Event type API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from slotkeeper.modules.event_types.schemas import EventTypeCreate, EventTypeRead, EventTypeUpdate
from slotkeeper.modules.event_types.service import EventTypesService, get_event_types_service
from slotkeeper.modules.identity.service import get_current_user
from slotkeeper.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/event-types", tags=["event-types"])


@router.post("", response_model=EventTypeRead, status_code=status.HTTP_201_CREATED)
async def create_event_type(
    payload: EventTypeCreate,
    service: EventTypesService = Depends(get_event_types_service),
    current_user=Depends(get_current_user),
) -> EventTypeRead:
    """Create event type."""
    event_type = await service.create_event_type(payload, current_user)
    return EventTypeRead.model_validate(event_type)


@router.get("", response_model=Page[EventTypeRead])
async def list_event_types(
    pagination=Depends(get_pagination_params),
    service: EventTypesService = Depends(get_event_types_service),
    current_user=Depends(get_current_user),
) -> Page[EventTypeRead]:
    """List event types of current host."""
    items, total = await service.list_event_types(current_user, pagination.limit, pagination.offset)
    serialized = [EventTypeRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.get("/{event_type_id}", response_model=EventTypeRead)
async def get_event_type(
    event_type_id: UUID,
    service: EventTypesService = Depends(get_event_types_service),
    current_user=Depends(get_current_user),
) -> EventTypeRead:
    event_type = await service.get_owned(event_type_id, current_user)
    return EventTypeRead.model_validate(event_type)


@router.patch("/{event_type_id}", response_model=EventTypeRead)
async def update_event_type(
    event_type_id: UUID,
    payload: EventTypeUpdate,
    service: EventTypesService = Depends(get_event_types_service),
    current_user=Depends(get_current_user),
) -> EventTypeRead:
    """Update event type."""
    event_type = await service.update_event_type(event_type_id, payload, current_user)
    return EventTypeRead.model_validate(event_type)


@router.delete("/{event_type_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event_type(
    event_type_id: UUID,
    service: EventTypesService = Depends(get_event_types_service),
    current_user=Depends(get_current_user),
) -> Response:
    """Delete event type."""
    await service.delete_event_type(event_type_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
