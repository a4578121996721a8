"""Calendar connections API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status

from slotkeeper.modules.calendar.schemas import CalendarConnectionCreate, CalendarConnectionRead
from slotkeeper.modules.calendar.service import CalendarService, get_calendar_service
from slotkeeper.modules.identity.service import get_current_user

router = APIRouter(prefix="/calendar", tags=["calendar"])


@router.get("/connections", response_model=list[CalendarConnectionRead])
async def list_connections(
    service: CalendarService = Depends(get_calendar_service),
    current_user=Depends(get_current_user),
) -> list[CalendarConnectionRead]:
    connections = await service.list_connections(current_user)
    return [CalendarConnectionRead.model_validate(item) for item in connections]


@router.post("/connections", response_model=CalendarConnectionRead, status_code=status.HTTP_201_CREATED)
async def create_connection(
    payload: CalendarConnectionCreate,
    service: CalendarService = Depends(get_calendar_service),
    current_user=Depends(get_current_user),
) -> CalendarConnectionRead:
    """Store provider access token for busy-time lookups and event sync."""
    connection = await service.create_connection(payload, current_user)
    return CalendarConnectionRead.model_validate(connection)


@router.delete("/connections/{connection_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_connection(
    connection_id: UUID,
    service: CalendarService = Depends(get_calendar_service),
    current_user=Depends(get_current_user),
) -> None:
    await service.delete_connection(connection_id, current_user)
