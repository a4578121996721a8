"""Availability repository layer."""

from __future__ import annotations

from datetime import time
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from slotkeeper.modules.availability.models import AvailabilityRule


class AvailabilityRepository:
    """DB access for availability rules."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_rule(
        self,
        user_id: UUID,
        day_of_week: int,
        start_time: time,
        end_time: time,
        buffer_minutes: int,
        max_bookings_per_day: int | None,
    ) -> AvailabilityRule:
        rule = AvailabilityRule(
            user_id=user_id,
            day_of_week=day_of_week,
            start_time=start_time,
            end_time=end_time,
            buffer_minutes=buffer_minutes,
            max_bookings_per_day=max_bookings_per_day,
        )
        self.session.add(rule)
        await self.session.flush()
        return rule

    async def get_rule_by_id(self, rule_id: UUID) -> AvailabilityRule | None:
        stmt = select(AvailabilityRule).where(AvailabilityRule.id == rule_id)
        return await self.session.scalar(stmt)

    async def list_rules(self, user_id: UUID) -> list[AvailabilityRule]:
        stmt = (
            select(AvailabilityRule)
            .where(AvailabilityRule.user_id == user_id)
            .order_by(AvailabilityRule.day_of_week.asc(), AvailabilityRule.start_time.asc())
        )
        return (await self.session.scalars(stmt)).all()

    async def list_rules_for_day(self, user_id: UUID, day_of_week: int) -> list[AvailabilityRule]:
        stmt = (
            select(AvailabilityRule)
            .where(AvailabilityRule.user_id == user_id, AvailabilityRule.day_of_week == day_of_week)
            .order_by(AvailabilityRule.start_time.asc())
        )
        return (await self.session.scalars(stmt)).all()

    async def save(self, rule: AvailabilityRule) -> AvailabilityRule:
        await self.session.flush()
        return rule

    async def delete_rule(self, rule: AvailabilityRule) -> None:
        await self.session.delete(rule)
        await self.session.flush()
