"""Availability business logic layer."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from slotkeeper.core.config import get_settings
from slotkeeper.core.database import get_db_session
from slotkeeper.core.metrics import record_calendar_failure
from slotkeeper.modules.audit.repository import AuditRepository
from slotkeeper.modules.availability.models import AvailabilityRule
from slotkeeper.modules.availability.repository import AvailabilityRepository
from slotkeeper.modules.availability.schemas import AvailabilityRuleCreate, AvailabilityRuleUpdate
from slotkeeper.modules.availability.slots import (
    BusyInterval,
    Slot,
    SlotPolicy,
    compute_available_slots,
    effective_buffer,
    resolve_duration,
)
from slotkeeper.modules.booking.repository import BookingRepository
from slotkeeper.modules.booking_requests.repository import BookingRequestRepository
from slotkeeper.modules.calendar.repository import CalendarRepository
from slotkeeper.modules.calendar.service import CalendarService
from slotkeeper.modules.event_types.repository import EventTypesRepository
from slotkeeper.modules.event_types.service import EventTypesService
from slotkeeper.modules.identity.models import User
from slotkeeper.modules.identity.repository import IdentityRepository
from slotkeeper.shared.exceptions import NotFoundException, UnauthorizedException, ValidationException
from slotkeeper.shared.timewindows import day_of_week, from_utc, local_day_bounds, pad
from slotkeeper.shared.utils import ensure_utc, utc_now

settings = get_settings()
logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AvailableSlots:
    """Slots computed for one host and local date."""

    host: User
    date: date
    timezone: str
    duration_minutes: int
    slots: list[Slot] = field(default_factory=list)


def to_busy_intervals(rows, source: str) -> list[BusyInterval]:
    """Convert stored rows to busy intervals, skipping rows with missing or inverted times."""
    intervals: list[BusyInterval] = []
    for row in rows:
        start_at = getattr(row, "start_at", None)
        end_at = getattr(row, "end_at", None)
        if start_at is None or end_at is None or start_at >= end_at:
            logger.warning("Skipping malformed %s %s: start=%s end=%s", source, getattr(row, "id", None), start_at, end_at)
            continue
        intervals.append(BusyInterval(start=ensure_utc(start_at), end=ensure_utc(end_at), source=source))
    return intervals


class AvailabilityService:
    """Availability rules management and slot computation."""

    def __init__(
        self,
        repository: AvailabilityRepository,
        booking_repository: BookingRepository,
        booking_request_repository: BookingRequestRepository,
        identity_repository: IdentityRepository,
        event_types_service: EventTypesService,
        calendar_service: CalendarService,
        audit_repository: AuditRepository,
    ) -> None:
        self.repository = repository
        self.booking_repository = booking_repository
        self.booking_request_repository = booking_request_repository
        self.identity_repository = identity_repository
        self.event_types_service = event_types_service
        self.calendar_service = calendar_service
        self.audit_repository = audit_repository

    async def list_rules(self, actor: User) -> list[AvailabilityRule]:
        return await self.repository.list_rules(actor.id)

    async def get_rule(self, rule_id: UUID, actor: User) -> AvailabilityRule:
        rule = await self.repository.get_rule_by_id(rule_id)
        if rule is None:
            raise NotFoundException("Availability rule not found")
        if rule.user_id != actor.id:
            raise UnauthorizedException("You cannot manage this availability rule")
        return rule

    async def create_rule(self, payload: AvailabilityRuleCreate, actor: User) -> AvailabilityRule:
        """Create weekly rule; start must be before end."""
        if payload.start_time >= payload.end_time:
            raise ValidationException("Start time must be before end time")

        rule = await self.repository.create_rule(
            user_id=actor.id,
            day_of_week=payload.day_of_week,
            start_time=payload.start_time,
            end_time=payload.end_time,
            buffer_minutes=payload.buffer_minutes,
            max_bookings_per_day=payload.max_bookings_per_day,
        )
        await self._audit(actor, "availability_rule.create", rule)
        return rule

    async def update_rule(self, rule_id: UUID, payload: AvailabilityRuleUpdate, actor: User) -> AvailabilityRule:
        rule = await self.get_rule(rule_id, actor)
        changes = payload.model_dump(exclude_unset=True)

        start_time = changes.get("start_time") if changes.get("start_time") is not None else rule.start_time
        end_time = changes.get("end_time") if changes.get("end_time") is not None else rule.end_time
        if start_time >= end_time:
            raise ValidationException("Start time must be before end time")

        for field_name, value in changes.items():
            if value is None and field_name != "max_bookings_per_day":
                continue
            setattr(rule, field_name, value)
        await self.repository.save(rule)
        await self._audit(actor, "availability_rule.update", rule)
        return rule

    async def delete_rule(self, rule_id: UUID, actor: User) -> None:
        rule = await self.get_rule(rule_id, actor)
        await self._audit(actor, "availability_rule.delete", rule)
        await self.repository.delete_rule(rule)

    async def _audit(self, actor: User, action: str, rule: AvailabilityRule) -> None:
        await self.audit_repository.create_audit_log(
            actor_id=actor.id,
            action=action,
            entity_type="availability_rule",
            entity_id=str(rule.id),
            payload={
                "day_of_week": rule.day_of_week,
                "start_time": rule.start_time.isoformat(),
                "end_time": rule.end_time.isoformat(),
                "buffer_minutes": rule.buffer_minutes,
                "max_bookings_per_day": rule.max_bookings_per_day,
            },
        )

    async def _safe_busy_times(self, host_id: UUID, window_start: datetime, window_end: datetime) -> list[BusyInterval]:
        """External busy times; a failing lookup counts as no busy time."""
        try:
            return await self.calendar_service.get_busy_times(host_id, window_start, window_end)
        except Exception:
            logger.exception("Calendar busy-time lookup failed for host %s", host_id)
            record_calendar_failure("all")
            return []

    async def get_available_slots(
        self,
        host: User,
        target_date: date,
        *,
        requested_duration: int | None = None,
        event_type_id: UUID | None = None,
        now: datetime | None = None,
    ) -> AvailableSlots:
        """Compute bookable slots of host on a local calendar date."""
        if requested_duration is not None and not (
            settings.min_slot_duration_minutes <= requested_duration <= settings.max_slot_duration_minutes
        ):
            raise ValidationException(
                f"Duration must be between {settings.min_slot_duration_minutes} "
                f"and {settings.max_slot_duration_minutes} minutes",
            )

        now = ensure_utc(now) if now is not None else utc_now()
        event_type = None
        if event_type_id is not None:
            event_type = await self.event_types_service.get_bookable(event_type_id, host.id)
        user_settings = await self.identity_repository.get_settings(host.id)

        duration_minutes = resolve_duration(
            event_type_minutes=event_type.duration_minutes if event_type is not None else None,
            settings_minutes=user_settings.meeting_duration if user_settings is not None else None,
            requested_minutes=requested_duration,
            default_minutes=settings.default_slot_duration_minutes,
            min_minutes=settings.min_slot_duration_minutes,
            max_minutes=settings.max_slot_duration_minutes,
        )
        result = AvailableSlots(host=host, date=target_date, timezone=host.timezone, duration_minutes=duration_minutes)

        rules = await self.repository.list_rules_for_day(host.id, day_of_week(target_date))
        if not rules:
            return result

        buffer_override = user_settings.buffer_minutes if user_settings is not None else None
        widest_buffer = max(effective_buffer(rule.buffer_minutes, buffer_override) for rule in rules)
        day_start, day_end = local_day_bounds(target_date, host.timezone)
        window_start, window_end = pad(day_start, day_end, widest_buffer)

        booking_rows = await self.booking_repository.list_confirmed_between(host.id, window_start, window_end)
        bookings = to_busy_intervals(booking_rows, "booking")
        bookings_on_date = sum(1 for interval in bookings if from_utc(interval.start, host.timezone).date() == target_date)

        if settings.slots_block_pending_requests:
            request_rows = await self.booking_request_repository.list_live_between(
                host.id,
                window_start,
                window_end,
                now,
            )
            bookings.extend(to_busy_intervals(request_rows, "booking_request"))

        calendar_busy = await self._safe_busy_times(host.id, window_start, window_end)

        if event_type is not None:
            policy = SlotPolicy(
                minimum_notice=timedelta(minutes=event_type.minimum_notice_minutes),
                horizon=timedelta(minutes=event_type.maximum_advance_minutes),
            )
        else:
            horizon_days = (
                user_settings.booking_horizon_days
                if user_settings is not None
                else settings.default_booking_horizon_days
            )
            policy = SlotPolicy(
                minimum_notice=timedelta(minutes=settings.minimum_notice_minutes),
                horizon=timedelta(days=horizon_days),
            )

        result.slots = compute_available_slots(
            rules,
            target_date,
            host.timezone,
            duration_minutes,
            bookings=bookings,
            calendar_busy=calendar_busy,
            now=now,
            policy=policy,
            buffer_override=buffer_override,
            bookings_on_date=bookings_on_date,
        )
        logger.debug(
            "Computed %s slots for host %s on %s (duration=%s)",
            len(result.slots),
            host.id,
            target_date.isoformat(),
            duration_minutes,
        )
        return result


def build_availability_service(session: AsyncSession) -> AvailabilityService:
    return AvailabilityService(
        repository=AvailabilityRepository(session),
        booking_repository=BookingRepository(session),
        booking_request_repository=BookingRequestRepository(session),
        identity_repository=IdentityRepository(session),
        event_types_service=EventTypesService(EventTypesRepository(session)),
        calendar_service=CalendarService(CalendarRepository(session)),
        audit_repository=AuditRepository(session),
    )


async def get_availability_service(session: AsyncSession = Depends(get_db_session)) -> AvailabilityService:
    """Dependency provider for availability service."""
    return build_availability_service(session)
