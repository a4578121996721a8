"""Booking repository layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, and_, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from slotkeeper.core.enums import BookingStatusEnum
from slotkeeper.modules.booking.models import CONFIRMED_OVERLAP_CONSTRAINT, Booking

EXCLUSION_VIOLATION_SQLSTATE = "23P01"


class OverlappingBookingError(Exception):
    """Storage layer refused a confirmed booking overlapping another one."""


def _is_overlap_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    if getattr(orig, "sqlstate", None) == EXCLUSION_VIOLATION_SQLSTATE:
        return True
    return CONFIRMED_OVERLAP_CONSTRAINT in str(orig)


class BookingRepository:
    """DB operations for booking domain."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_booking(
        self,
        host_id: UUID,
        customer_name: str,
        customer_email: str,
        customer_phone: str | None,
        start_at: datetime,
        end_at: datetime,
        notes: str | None,
        event_type_id: UUID | None,
    ) -> Booking:
        booking = Booking(
            host_id=host_id,
            customer_name=customer_name,
            customer_email=customer_email,
            customer_phone=customer_phone,
            start_at=start_at,
            end_at=end_at,
            notes=notes,
            event_type_id=event_type_id,
            status=BookingStatusEnum.CONFIRMED,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(booking)
                await self.session.flush()
        except IntegrityError as exc:
            if _is_overlap_violation(exc):
                raise OverlappingBookingError(str(exc.orig)) from exc
            raise
        return booking

    async def find_overlapping_confirmed(
        self,
        host_id: UUID,
        start_at: datetime,
        end_at: datetime,
    ) -> Booking | None:
        """Return one confirmed booking that starts inside, ends inside or contains the range."""
        stmt = (
            select(Booking)
            .where(
                Booking.host_id == host_id,
                Booking.status == BookingStatusEnum.CONFIRMED,
                or_(
                    and_(Booking.start_at >= start_at, Booking.start_at < end_at),
                    and_(Booking.end_at > start_at, Booking.end_at <= end_at),
                    and_(Booking.start_at <= start_at, Booking.end_at >= end_at),
                ),
            )
            .limit(1)
        )
        return await self.session.scalar(stmt)

    async def list_confirmed_between(
        self,
        host_id: UUID,
        window_start: datetime,
        window_end: datetime,
    ) -> list[Booking]:
        stmt = (
            select(Booking)
            .where(
                Booking.host_id == host_id,
                Booking.status == BookingStatusEnum.CONFIRMED,
                Booking.start_at < window_end,
                Booking.end_at > window_start,
            )
            .order_by(Booking.start_at.asc())
        )
        return (await self.session.scalars(stmt)).all()

    async def get_booking_by_id(self, booking_id: UUID) -> Booking | None:
        stmt = select(Booking).where(Booking.id == booking_id)
        return await self.session.scalar(stmt)

    async def list_bookings(
        self,
        host_id: UUID,
        status: BookingStatusEnum | None,
        limit: int,
        offset: int,
    ) -> tuple[list[Booking], int]:
        base_stmt: Select[tuple[Booking]] = select(Booking).where(Booking.host_id == host_id)
        if status is not None:
            base_stmt = base_stmt.where(Booking.status == status)

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(Booking.start_at.desc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total

    async def save(self, booking: Booking) -> Booking:
        await self.session.flush()
        return booking
