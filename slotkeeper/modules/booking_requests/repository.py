"""Booking request repository layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from slotkeeper.core.enums import BookingRequestStatusEnum
from slotkeeper.modules.booking_requests.models import BookingRequest


def live_clause(now: datetime):
    """Requests still holding their time range: pending or awaiting host, not yet expired."""
    return or_(
        and_(
            BookingRequest.status == BookingRequestStatusEnum.PENDING,
            BookingRequest.expires_at > now,
        ),
        and_(
            BookingRequest.status == BookingRequestStatusEnum.PENDING_HOST_APPROVAL,
            BookingRequest.host_approval_expires_at > now,
        ),
    )


class BookingRequestRepository:
    """DB operations for booking requests."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_request(
        self,
        host_id: UUID,
        event_type_id: UUID | None,
        customer_name: str,
        customer_email: str,
        customer_phone: str | None,
        start_at: datetime,
        end_at: datetime,
        notes: str | None,
        confirmation_token: str,
        expires_at: datetime,
    ) -> BookingRequest:
        request = BookingRequest(
            host_id=host_id,
            event_type_id=event_type_id,
            customer_name=customer_name,
            customer_email=customer_email,
            customer_phone=customer_phone,
            start_at=start_at,
            end_at=end_at,
            notes=notes,
            confirmation_token=confirmation_token,
            expires_at=expires_at,
            status=BookingRequestStatusEnum.PENDING,
        )
        self.session.add(request)
        await self.session.flush()
        return request

    async def get_by_id(self, request_id: UUID) -> BookingRequest | None:
        stmt = select(BookingRequest).where(BookingRequest.id == request_id)
        return await self.session.scalar(stmt)

    async def get_by_confirmation_token(self, token: str) -> BookingRequest | None:
        """Load and row-lock request, serialising concurrent confirmations of one token."""
        stmt = select(BookingRequest).where(BookingRequest.confirmation_token == token).with_for_update()
        return await self.session.scalar(stmt)

    async def get_by_host_approval_token(self, token: str) -> BookingRequest | None:
        stmt = select(BookingRequest).where(BookingRequest.host_approval_token == token).with_for_update()
        return await self.session.scalar(stmt)

    async def find_overlapping_live(
        self,
        host_id: UUID,
        start_at: datetime,
        end_at: datetime,
        now: datetime,
    ) -> BookingRequest | None:
        stmt = (
            select(BookingRequest)
            .where(
                BookingRequest.host_id == host_id,
                BookingRequest.start_at < end_at,
                BookingRequest.end_at > start_at,
                live_clause(now),
            )
            .limit(1)
        )
        return await self.session.scalar(stmt)

    async def list_live_between(
        self,
        host_id: UUID,
        window_start: datetime,
        window_end: datetime,
        now: datetime,
    ) -> list[BookingRequest]:
        stmt = (
            select(BookingRequest)
            .where(
                BookingRequest.host_id == host_id,
                BookingRequest.start_at < window_end,
                BookingRequest.end_at > window_start,
                live_clause(now),
            )
            .order_by(BookingRequest.start_at.asc())
        )
        return (await self.session.scalars(stmt)).all()

    async def find_overdue(self, now: datetime, limit: int) -> list[BookingRequest]:
        """Pending or awaiting-host requests whose hold has lapsed."""
        stmt = (
            select(BookingRequest)
            .where(
                or_(
                    and_(
                        BookingRequest.status == BookingRequestStatusEnum.PENDING,
                        BookingRequest.expires_at <= now,
                    ),
                    and_(
                        BookingRequest.status == BookingRequestStatusEnum.PENDING_HOST_APPROVAL,
                        BookingRequest.host_approval_expires_at <= now,
                    ),
                ),
            )
            .order_by(BookingRequest.expires_at.asc())
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        return (await self.session.scalars(stmt)).all()

    async def save(self, request: BookingRequest) -> BookingRequest:
        await self.session.flush()
        return request
