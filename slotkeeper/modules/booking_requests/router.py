"""Booking request API router."""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, status
from fastapi.responses import JSONResponse

from slotkeeper.modules.booking.schemas import BookingRead
from slotkeeper.modules.booking_requests.schemas import (
    BookingRequestCreate,
    BookingRequestOutcomeRead,
    BookingRequestRead,
    HostRejectRequest,
)
from slotkeeper.modules.booking_requests.service import (
    BookingRequestService,
    TransitionOutcome,
    get_booking_request_service,
)
from slotkeeper.shared.exceptions import error_response

router = APIRouter(prefix="/booking-requests", tags=["booking-requests"])
public_router = APIRouter(prefix="/public", tags=["public"])


def serialize_outcome(outcome: TransitionOutcome) -> BookingRequestOutcomeRead | JSONResponse:
    # Error outcomes already persisted their status change; answer without raising.
    if outcome.error is not None:
        return error_response(outcome.error)
    return BookingRequestOutcomeRead(
        status=outcome.request.status,
        already_confirmed=outcome.already_confirmed,
        requires_host_approval=outcome.requires_host_approval,
        request=BookingRequestRead.model_validate(outcome.request),
        booking=BookingRead.model_validate(outcome.booking) if outcome.booking is not None else None,
    )


@public_router.post(
    "/{username}/booking-requests",
    response_model=BookingRequestRead,
    status_code=status.HTTP_201_CREATED,
)
async def submit_booking_request(
    username: str,
    payload: BookingRequestCreate,
    service: BookingRequestService = Depends(get_booking_request_service),
) -> BookingRequestRead:
    """Hold a time range on the host's calendar until the customer confirms by email."""
    request = await service.submit(username, payload)
    return BookingRequestRead.model_validate(request)


@router.post("/confirm/{token}", response_model=BookingRequestOutcomeRead)
async def confirm_booking_request(
    token: str,
    service: BookingRequestService = Depends(get_booking_request_service),
):
    outcome = await service.customer_confirm(token)
    return serialize_outcome(outcome)


@router.post("/host-approval/{token}/approve", response_model=BookingRequestOutcomeRead)
async def approve_booking_request(
    token: str,
    service: BookingRequestService = Depends(get_booking_request_service),
):
    outcome = await service.host_approve(token)
    return serialize_outcome(outcome)


@router.post("/host-approval/{token}/reject", response_model=BookingRequestOutcomeRead)
async def reject_booking_request(
    token: str,
    payload: HostRejectRequest | None = Body(default=None),
    service: BookingRequestService = Depends(get_booking_request_service),
):
    outcome = await service.host_reject(token, payload.reason if payload is not None else None)
    return serialize_outcome(outcome)
