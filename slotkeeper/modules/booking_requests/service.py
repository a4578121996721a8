"""Booking request business logic: submission and the two-step confirmation flow.

pending -> pending_host_approval -> confirmed | cancelled | expired
pending -> confirmed | cancelled | expired

Outcomes that change state and still have to be reported as errors (an
expired hold, a slot taken in the meantime) are returned as
`TransitionOutcome` values instead of raised, so the request transaction
keeps the new status.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from slotkeeper.core.config import get_settings
from slotkeeper.core.database import get_db_session
from slotkeeper.core.enums import BookingRequestStatusEnum
from slotkeeper.core.metrics import record_booking_conflict, record_request_transition
from slotkeeper.modules.audit.repository import AuditRepository
from slotkeeper.modules.availability.slots import resolve_duration
from slotkeeper.modules.booking.models import Booking
from slotkeeper.modules.booking.repository import BookingRepository
from slotkeeper.modules.booking.service import BookingService
from slotkeeper.modules.booking_requests.models import BookingRequest
from slotkeeper.modules.booking_requests.repository import BookingRequestRepository
from slotkeeper.modules.booking_requests.schemas import BookingRequestCreate
from slotkeeper.modules.event_types.models import EventType
from slotkeeper.modules.event_types.repository import EventTypesRepository
from slotkeeper.modules.event_types.service import EventTypesService
from slotkeeper.modules.identity.models import User
from slotkeeper.modules.identity.repository import IdentityRepository
from slotkeeper.shared.exceptions import (
    AppException,
    ConflictException,
    ExpiredException,
    NotFoundException,
    SlotTakenException,
    ValidationException,
)
from slotkeeper.shared.timewindows import from_utc
from slotkeeper.shared.utils import ensure_utc, generate_token, utc_now

settings = get_settings()
logger = logging.getLogger(__name__)

Status = BookingRequestStatusEnum

ALLOWED_TRANSITIONS: dict[BookingRequestStatusEnum, frozenset[BookingRequestStatusEnum]] = {
    Status.PENDING: frozenset(
        {Status.PENDING_HOST_APPROVAL, Status.CONFIRMED, Status.CANCELLED, Status.EXPIRED},
    ),
    Status.PENDING_HOST_APPROVAL: frozenset({Status.CONFIRMED, Status.CANCELLED, Status.EXPIRED}),
    Status.CONFIRMED: frozenset(),
    Status.CANCELLED: frozenset(),
    Status.EXPIRED: frozenset(),
}

SLOT_TAKEN_REASON = "Time slot is no longer available"


@dataclass(slots=True)
class TransitionOutcome:
    """Result of a confirmation step; `error` is set when the caller must answer with an error."""

    request: BookingRequest
    booking: Booking | None = None
    already_confirmed: bool = False
    error: AppException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def requires_host_approval(self) -> bool:
        return self.request.status == Status.PENDING_HOST_APPROVAL


def request_event_payload(request: BookingRequest) -> dict:
    return {
        "request_id": str(request.id),
        "host_id": str(request.host_id),
        "event_type_id": str(request.event_type_id) if request.event_type_id is not None else None,
        "customer_name": request.customer_name,
        "customer_email": request.customer_email,
        "start_at": request.start_at.isoformat(),
        "end_at": request.end_at.isoformat(),
        "status": str(request.status),
    }


def is_past(deadline: datetime | None, now: datetime) -> bool:
    return deadline is not None and now > ensure_utc(deadline)


class BookingRequestService:
    """Booking request domain service."""

    def __init__(
        self,
        repository: BookingRequestRepository,
        booking_service: BookingService,
        identity_repository: IdentityRepository,
        event_types_service: EventTypesService,
        audit_repository: AuditRepository,
    ) -> None:
        self.repository = repository
        self.booking_service = booking_service
        self.identity_repository = identity_repository
        self.event_types_service = event_types_service
        self.audit_repository = audit_repository

    def _transition(self, request: BookingRequest, to_status: BookingRequestStatusEnum) -> None:
        from_status = request.status
        if to_status not in ALLOWED_TRANSITIONS[from_status]:
            raise ConflictException(
                f"Invalid booking request transition: {from_status} -> {to_status}",
                code="invalid_state",
            )
        request.status = to_status
        record_request_transition(to_status)
        logger.info("Booking request %s: %s -> %s", request.id, from_status, to_status)

    async def _record(
        self,
        request: BookingRequest,
        *,
        action: str,
        event_type: str | None,
        actor_id: UUID | None = None,
        extra: dict | None = None,
    ) -> None:
        payload = {**request_event_payload(request), **(extra or {})}
        await self.audit_repository.create_audit_log(
            actor_id=actor_id,
            action=action,
            entity_type="booking_request",
            entity_id=str(request.id),
            payload={key: value for key, value in payload.items() if not key.endswith("_token")},
        )
        if event_type is not None:
            await self.audit_repository.create_outbox_event(
                aggregate_type="booking_request",
                aggregate_id=str(request.id),
                event_type=event_type,
                payload=payload,
            )

    async def _get_host(self, host_id: UUID) -> User:
        host = await self.identity_repository.get_user_by_id(host_id)
        if host is None:
            raise NotFoundException("Host not found")
        return host

    async def _get_event_type(self, request: BookingRequest) -> EventType | None:
        if request.event_type_id is None:
            return None
        return await self.event_types_service.find_event_type(request.event_type_id)

    def _check_duration(self, start_at: datetime, end_at: datetime, event_type: EventType | None) -> None:
        duration_minutes = (end_at - start_at) / timedelta(minutes=1)
        if event_type is not None:
            expected = resolve_duration(
                event_type_minutes=event_type.duration_minutes,
                settings_minutes=None,
                requested_minutes=None,
                default_minutes=settings.default_slot_duration_minutes,
                min_minutes=settings.min_slot_duration_minutes,
                max_minutes=settings.max_slot_duration_minutes,
            )
            if duration_minutes != expected:
                raise ValidationException(f"Booking must last {expected} minutes for this event type")
            return
        if not settings.min_slot_duration_minutes <= duration_minutes <= settings.max_slot_duration_minutes:
            raise ValidationException(
                f"Booking must last between {settings.min_slot_duration_minutes} "
                f"and {settings.max_slot_duration_minutes} minutes",
            )

    async def submit(self, username: str, payload: BookingRequestCreate, now: datetime | None = None) -> BookingRequest:
        """Place a tentative hold on a host's time range and issue a confirmation token."""
        host = await self.identity_repository.get_user_by_username(username)
        if host is None:
            raise NotFoundException("User not found")

        start_at = ensure_utc(payload.start_at)
        end_at = ensure_utc(payload.end_at)
        if start_at >= end_at:
            raise ValidationException("End time must be after start time")

        now = ensure_utc(now) if now is not None else utc_now()
        event_type = None
        if payload.event_type_id is not None:
            event_type = await self.event_types_service.get_bookable(payload.event_type_id, host.id)

        minimum_notice = (
            event_type.minimum_notice_minutes if event_type is not None else settings.minimum_notice_minutes
        )
        if start_at < now + timedelta(minutes=minimum_notice):
            raise ValidationException(f"Booking must be made at least {minimum_notice} minutes in advance")
        if event_type is not None:
            if start_at > now + timedelta(minutes=event_type.maximum_advance_minutes):
                raise ValidationException("Booking is too far in advance for this event type")
        else:
            user_settings = await self.identity_repository.get_settings(host.id)
            horizon_days = (
                user_settings.booking_horizon_days
                if user_settings is not None
                else settings.default_booking_horizon_days
            )
            if start_at > now + timedelta(days=horizon_days):
                raise ValidationException(f"Booking can be made at most {horizon_days} days in advance")
        self._check_duration(start_at, end_at, event_type)

        await self.booking_service.ensure_range_free(host.id, host.timezone, start_at, end_at, stage="submit")
        held = await self.repository.find_overlapping_live(host.id, start_at, end_at, now)
        if held is not None:
            record_booking_conflict("submit_pending")
            logger.info("Range for host %s is held by request %s", host.id, held.id)
            raise SlotTakenException(host.id, from_utc(start_at, host.timezone).date())

        request = await self.repository.create_request(
            host_id=host.id,
            event_type_id=payload.event_type_id,
            customer_name=payload.customer_name,
            customer_email=str(payload.customer_email),
            customer_phone=payload.customer_phone,
            start_at=start_at,
            end_at=end_at,
            notes=payload.notes,
            confirmation_token=generate_token(),
            expires_at=now + timedelta(minutes=settings.booking_request_expiry_minutes),
        )
        record_request_transition(Status.PENDING)
        await self._record(
            request,
            action="booking_request.submit",
            event_type="booking_request.submitted",
            extra={
                "confirmation_token": request.confirmation_token,
                "expires_at": ensure_utc(request.expires_at).isoformat(),
            },
        )
        logger.info("Booking request %s submitted for host %s", request.id, host.id)
        return request

    async def customer_confirm(self, token: str, now: datetime | None = None) -> TransitionOutcome:
        """Customer clicks the emailed link; either books or hands over to the host."""
        request = await self.repository.get_by_confirmation_token(token)
        if request is None:
            raise NotFoundException("Booking request not found")
        if request.status in (Status.CONFIRMED, Status.PENDING_HOST_APPROVAL):
            return TransitionOutcome(request=request, already_confirmed=True)
        if request.status == Status.EXPIRED:
            raise ExpiredException("Booking request has expired")
        if request.status == Status.CANCELLED:
            raise ConflictException("Booking request was cancelled", code="invalid_state")

        now = ensure_utc(now) if now is not None else utc_now()
        if is_past(request.expires_at, now):
            return await self._expire(request, now)

        host = await self._get_host(request.host_id)
        taken = await self._check_range(request, host, stage="customer_confirm")
        if taken is not None:
            return await self._cancel_taken(request, taken)

        request.customer_confirmed_at = now
        event_type = await self._get_event_type(request)
        if event_type is not None and event_type.requires_confirmation:
            self._transition(request, Status.PENDING_HOST_APPROVAL)
            request.host_approval_token = generate_token()
            request.host_approval_expires_at = now + timedelta(days=settings.host_approval_expiry_days)
            await self.repository.save(request)
            await self._record(
                request,
                action="booking_request.customer_confirm",
                event_type="booking_request.awaiting_host_approval",
                extra={
                    "host_approval_token": request.host_approval_token,
                    "host_approval_expires_at": ensure_utc(request.host_approval_expires_at).isoformat(),
                },
            )
            return TransitionOutcome(request=request)

        return await self._book(request, host, stage="customer_confirm", action="booking_request.customer_confirm")

    async def host_approve(self, token: str, now: datetime | None = None) -> TransitionOutcome:
        """Host accepts a customer-confirmed request."""
        request = await self.repository.get_by_host_approval_token(token)
        if request is None:
            raise NotFoundException("Booking request not found")
        if request.status == Status.CONFIRMED:
            return TransitionOutcome(request=request, already_confirmed=True)
        if request.status == Status.EXPIRED:
            raise ExpiredException("Booking request has expired")
        if request.status != Status.PENDING_HOST_APPROVAL:
            raise ConflictException(f"Booking request is {request.status}", code="invalid_state")

        now = ensure_utc(now) if now is not None else utc_now()
        if is_past(request.host_approval_expires_at, now):
            return await self._expire(request, now)

        host = await self._get_host(request.host_id)
        taken = await self._check_range(request, host, stage="host_approve")
        if taken is not None:
            return await self._cancel_taken(request, taken)

        request.host_decision_at = now
        return await self._book(request, host, stage="host_approve", action="booking_request.host_approve")

    async def host_reject(self, token: str, reason: str | None = None, now: datetime | None = None) -> TransitionOutcome:
        """Host declines a customer-confirmed request; no booking is created."""
        request = await self.repository.get_by_host_approval_token(token)
        if request is None:
            raise NotFoundException("Booking request not found")
        if request.status == Status.EXPIRED:
            raise ExpiredException("Booking request has expired")
        if request.status != Status.PENDING_HOST_APPROVAL:
            raise ConflictException(f"Booking request is {request.status}", code="invalid_state")

        now = ensure_utc(now) if now is not None else utc_now()
        if is_past(request.host_approval_expires_at, now):
            return await self._expire(request, now)

        self._transition(request, Status.CANCELLED)
        request.host_decision_at = now
        request.cancellation_reason = reason
        await self.repository.save(request)
        await self._record(
            request,
            action="booking_request.host_reject",
            event_type="booking_request.rejected",
            actor_id=request.host_id,
            extra={"reason": reason},
        )
        return TransitionOutcome(request=request)

    async def expire_stale(self, now: datetime | None = None, limit: int = 100) -> int:
        """Move lapsed holds to expired; returns how many were expired."""
        now = ensure_utc(now) if now is not None else utc_now()
        overdue = await self.repository.find_overdue(now, limit)
        for request in overdue:
            await self._expire(request, now)
        if overdue:
            logger.info("Expired %s stale booking requests", len(overdue))
        return len(overdue)

    async def _check_range(self, request: BookingRequest, host: User, *, stage: str) -> SlotTakenException | None:
        try:
            await self.booking_service.ensure_range_free(
                host.id,
                host.timezone,
                ensure_utc(request.start_at),
                ensure_utc(request.end_at),
                stage=stage,
            )
        except SlotTakenException as exc:
            return exc
        return None

    async def _expire(self, request: BookingRequest, now: datetime) -> TransitionOutcome:
        self._transition(request, Status.EXPIRED)
        await self.repository.save(request)
        await self._record(
            request,
            action="booking_request.expire",
            event_type="booking_request.expired",
            extra={"expired_at": now.isoformat()},
        )
        return TransitionOutcome(request=request, error=ExpiredException("Booking request has expired"))

    async def _cancel_taken(self, request: BookingRequest, exc: SlotTakenException) -> TransitionOutcome:
        self._transition(request, Status.CANCELLED)
        request.cancellation_reason = SLOT_TAKEN_REASON
        await self.repository.save(request)
        await self._record(
            request,
            action="booking_request.slot_taken",
            event_type="booking_request.cancelled",
            extra={"reason": SLOT_TAKEN_REASON},
        )
        return TransitionOutcome(request=request, error=exc)

    async def _book(self, request: BookingRequest, host: User, *, stage: str, action: str) -> TransitionOutcome:
        try:
            booking = await self.booking_service.book(
                host.id,
                host.timezone,
                customer_name=request.customer_name,
                customer_email=request.customer_email,
                customer_phone=request.customer_phone,
                start_at=ensure_utc(request.start_at),
                end_at=ensure_utc(request.end_at),
                notes=request.notes,
                event_type_id=request.event_type_id,
                stage=stage,
            )
        except SlotTakenException as exc:
            return await self._cancel_taken(request, exc)

        self._transition(request, Status.CONFIRMED)
        request.booking_id = booking.id
        await self.repository.save(request)
        await self._record(
            request,
            action=action,
            event_type=None,
            extra={"booking_id": str(booking.id)},
        )
        return TransitionOutcome(request=request, booking=booking)


def build_booking_request_service(session: AsyncSession) -> BookingRequestService:
    return BookingRequestService(
        repository=BookingRequestRepository(session),
        booking_service=BookingService(BookingRepository(session), AuditRepository(session)),
        identity_repository=IdentityRepository(session),
        event_types_service=EventTypesService(EventTypesRepository(session)),
        audit_repository=AuditRepository(session),
    )


async def get_booking_request_service(session: AsyncSession = Depends(get_db_session)) -> BookingRequestService:
    """Dependency provider for booking request service."""
    return build_booking_request_service(session)
