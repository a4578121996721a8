"""Availability API router."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from slotkeeper.modules.availability.schemas import (
    AvailabilityRuleCreate,
    AvailabilityRuleRead,
    AvailabilityRuleUpdate,
    AvailableSlotsRead,
    HostSummary,
    SlotRead,
)
from slotkeeper.modules.availability.service import AvailabilityService, AvailableSlots, get_availability_service
from slotkeeper.modules.identity.service import IdentityService, get_current_user, get_identity_service
from slotkeeper.shared.exceptions import ValidationException

router = APIRouter(prefix="/availability", tags=["availability"])
public_router = APIRouter(prefix="/public", tags=["public"])


def parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationException("Valid date is required (YYYY-MM-DD)") from exc


def serialize_slots(result: AvailableSlots, *, include_host: bool = False) -> AvailableSlotsRead:
    return AvailableSlotsRead(
        date=result.date,
        timezone=result.timezone,
        duration_minutes=result.duration_minutes,
        slots=[SlotRead(start=slot.start, end=slot.end) for slot in result.slots],
        host=HostSummary.model_validate(result.host) if include_host else None,
    )


@router.get("/rules", response_model=list[AvailabilityRuleRead])
async def list_rules(
    service: AvailabilityService = Depends(get_availability_service),
    current_user=Depends(get_current_user),
) -> list[AvailabilityRuleRead]:
    rules = await service.list_rules(current_user)
    return [AvailabilityRuleRead.model_validate(rule) for rule in rules]


@router.post("/rules", response_model=AvailabilityRuleRead, status_code=status.HTTP_201_CREATED)
async def create_rule(
    payload: AvailabilityRuleCreate,
    service: AvailabilityService = Depends(get_availability_service),
    current_user=Depends(get_current_user),
) -> AvailabilityRuleRead:
    """Create weekly availability rule."""
    rule = await service.create_rule(payload, current_user)
    return AvailabilityRuleRead.model_validate(rule)


@router.get("/rules/{rule_id}", response_model=AvailabilityRuleRead)
async def get_rule(
    rule_id: UUID,
    service: AvailabilityService = Depends(get_availability_service),
    current_user=Depends(get_current_user),
) -> AvailabilityRuleRead:
    rule = await service.get_rule(rule_id, current_user)
    return AvailabilityRuleRead.model_validate(rule)


@router.patch("/rules/{rule_id}", response_model=AvailabilityRuleRead)
async def update_rule(
    rule_id: UUID,
    payload: AvailabilityRuleUpdate,
    service: AvailabilityService = Depends(get_availability_service),
    current_user=Depends(get_current_user),
) -> AvailabilityRuleRead:
    rule = await service.update_rule(rule_id, payload, current_user)
    return AvailabilityRuleRead.model_validate(rule)


@router.delete("/rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rule(
    rule_id: UUID,
    service: AvailabilityService = Depends(get_availability_service),
    current_user=Depends(get_current_user),
) -> None:
    await service.delete_rule(rule_id, current_user)


@router.get("/slots", response_model=AvailableSlotsRead)
async def get_own_slots(
    date_value: str = Query(alias="date"),
    duration: int | None = Query(default=None),
    event_type_id: UUID | None = Query(default=None),
    service: AvailabilityService = Depends(get_availability_service),
    current_user=Depends(get_current_user),
) -> AvailableSlotsRead:
    """Preview own bookable slots for a date."""
    result = await service.get_available_slots(
        current_user,
        parse_date(date_value),
        requested_duration=duration,
        event_type_id=event_type_id,
    )
    return serialize_slots(result)


@public_router.get("/{username}/slots", response_model=AvailableSlotsRead)
async def get_public_slots(
    username: str,
    date_value: str = Query(alias="date"),
    duration: int | None = Query(default=None),
    event_type_id: UUID | None = Query(default=None),
    service: AvailabilityService = Depends(get_availability_service),
    identity_service: IdentityService = Depends(get_identity_service),
) -> AvailableSlotsRead:
    """Bookable slots shown on a host's public booking page."""
    target_date = parse_date(date_value)
    host = await identity_service.get_host_by_username(username)
    result = await service.get_available_slots(
        host,
        target_date,
        requested_duration=duration,
        event_type_id=event_type_id,
    )
    return serialize_slots(result, include_host=True)
