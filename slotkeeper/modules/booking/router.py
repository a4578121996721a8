"""Booking API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from slotkeeper.core.enums import BookingStatusEnum
from slotkeeper.modules.booking.schemas import BookingCancelRequest, BookingCreate, BookingRead
from slotkeeper.modules.booking.service import BookingService, get_booking_service
from slotkeeper.modules.identity.service import get_current_user
from slotkeeper.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> BookingRead:
    """Create confirmed booking after checking for overlaps."""
    booking = await service.create_booking(payload, current_user)
    return BookingRead.model_validate(booking)


@router.get("", response_model=Page[BookingRead])
async def list_bookings(
    status_filter: BookingStatusEnum | None = Query(default=None, alias="status"),
    pagination=Depends(get_pagination_params),
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> Page[BookingRead]:
    """List bookings of current host."""
    items, total = await service.list_bookings(current_user, status_filter, pagination.limit, pagination.offset)
    serialized = [BookingRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.get("/{booking_id}", response_model=BookingRead)
async def get_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> BookingRead:
    booking = await service.get_booking(booking_id, current_user)
    return BookingRead.model_validate(booking)


@router.post("/{booking_id}/cancel", response_model=BookingRead)
async def cancel_booking(
    booking_id: UUID,
    payload: BookingCancelRequest,
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> BookingRead:
    """Cancel booking."""
    booking = await service.cancel_booking(booking_id, payload, current_user)
    return BookingRead.model_validate(booking)
