"""Booking business logic layer."""

from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from slotkeeper.core.database import get_db_session
from slotkeeper.core.enums import BookingStatusEnum
from slotkeeper.core.metrics import record_booking_conflict
from slotkeeper.modules.audit.repository import AuditRepository
from slotkeeper.modules.booking.models import Booking
from slotkeeper.modules.booking.repository import BookingRepository, OverlappingBookingError
from slotkeeper.modules.booking.schemas import BookingCancelRequest, BookingCreate
from slotkeeper.modules.identity.models import User
from slotkeeper.shared.exceptions import (
    ConflictException,
    NotFoundException,
    SlotTakenException,
    UnauthorizedException,
    ValidationException,
)
from slotkeeper.shared.timewindows import from_utc
from slotkeeper.shared.utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)


def booking_event_payload(booking: Booking) -> dict:
    return {
        "booking_id": str(booking.id),
        "host_id": str(booking.host_id),
        "customer_name": booking.customer_name,
        "customer_email": booking.customer_email,
        "start_at": booking.start_at.isoformat(),
        "end_at": booking.end_at.isoformat(),
    }


class BookingService:
    """Booking domain service: overlap guard, creation and cancellation."""

    def __init__(
        self,
        booking_repository: BookingRepository,
        audit_repository: AuditRepository,
    ) -> None:
        self.booking_repository = booking_repository
        self.audit_repository = audit_repository

    async def ensure_range_free(
        self,
        host_id: UUID,
        host_timezone: str,
        start_at: datetime,
        end_at: datetime,
        *,
        stage: str,
    ) -> None:
        """Raise SlotTakenException if a confirmed booking overlaps the range."""
        existing = await self.booking_repository.find_overlapping_confirmed(host_id, start_at, end_at)
        if existing is not None:
            record_booking_conflict(stage)
            logger.info(
                "Range %s..%s for host %s overlaps booking %s (%s)",
                start_at.isoformat(),
                end_at.isoformat(),
                host_id,
                existing.id,
                stage,
            )
            raise SlotTakenException(host_id, from_utc(start_at, host_timezone).date())

    async def book(
        self,
        host_id: UUID,
        host_timezone: str,
        *,
        customer_name: str,
        customer_email: str,
        customer_phone: str | None,
        start_at: datetime,
        end_at: datetime,
        notes: str | None,
        event_type_id: UUID | None,
        stage: str,
    ) -> Booking:
        """Insert confirmed booking; caller has already run the application-level overlap check."""
        try:
            booking = await self.booking_repository.create_booking(
                host_id=host_id,
                customer_name=customer_name,
                customer_email=customer_email,
                customer_phone=customer_phone,
                start_at=start_at,
                end_at=end_at,
                notes=notes,
                event_type_id=event_type_id,
            )
        except OverlappingBookingError as exc:
            record_booking_conflict(f"{stage}_constraint")
            logger.warning("Overlap constraint rejected booking for host %s: %s", host_id, exc)
            raise SlotTakenException(host_id, from_utc(start_at, host_timezone).date()) from exc

        await self.audit_repository.create_audit_log(
            actor_id=host_id,
            action=f"booking.{stage}.create",
            entity_type="booking",
            entity_id=str(booking.id),
            payload=booking_event_payload(booking),
        )
        await self.audit_repository.create_outbox_event(
            aggregate_type="booking",
            aggregate_id=str(booking.id),
            event_type="booking.created",
            payload=booking_event_payload(booking),
        )
        logger.info("Booking %s created for host %s", booking.id, host_id)
        return booking

    async def create_booking(self, payload: BookingCreate, actor: User) -> Booking:
        """Create confirmed booking directly on the host's calendar."""
        start_at = ensure_utc(payload.start_at)
        end_at = ensure_utc(payload.end_at)
        if start_at >= end_at:
            raise ValidationException("End time must be after start time")

        await self.ensure_range_free(actor.id, actor.timezone, start_at, end_at, stage="direct")
        return await self.book(
            actor.id,
            actor.timezone,
            customer_name=payload.customer_name,
            customer_email=str(payload.customer_email),
            customer_phone=payload.customer_phone,
            start_at=start_at,
            end_at=end_at,
            notes=payload.notes,
            event_type_id=payload.event_type_id,
            stage="direct",
        )

    async def get_booking(self, booking_id: UUID, actor: User) -> Booking:
        booking = await self.booking_repository.get_booking_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found")
        if booking.host_id != actor.id:
            raise UnauthorizedException("You cannot manage this booking")
        return booking

    async def cancel_booking(
        self,
        booking_id: UUID,
        payload: BookingCancelRequest,
        actor: User,
    ) -> Booking:
        """Cancel confirmed booking; bookings are never hard-deleted."""
        booking = await self.get_booking(booking_id, actor)
        if booking.status != BookingStatusEnum.CONFIRMED:
            raise ConflictException(f"Booking is already {booking.status}", code="invalid_state")

        booking.status = BookingStatusEnum.CANCELLED
        booking.cancelled_at = utc_now()
        booking.cancellation_reason = payload.reason
        await self.booking_repository.save(booking)

        await self.audit_repository.create_audit_log(
            actor_id=actor.id,
            action="booking.cancel",
            entity_type="booking",
            entity_id=str(booking.id),
            payload={"reason": payload.reason},
        )
        await self.audit_repository.create_outbox_event(
            aggregate_type="booking",
            aggregate_id=str(booking.id),
            event_type="booking.cancelled",
            payload={**booking_event_payload(booking), "reason": payload.reason},
        )
        logger.info("Booking %s cancelled", booking.id)
        return booking

    async def list_bookings(
        self,
        actor: User,
        status: BookingStatusEnum | None,
        limit: int,
        offset: int,
    ) -> tuple[list[Booking], int]:
        return await self.booking_repository.list_bookings(actor.id, status, limit, offset)


async def get_booking_service(session: AsyncSession = Depends(get_db_session)) -> BookingService:
    """Dependency provider for booking service."""
    return BookingService(
        booking_repository=BookingRepository(session),
        audit_repository=AuditRepository(session),
    )
