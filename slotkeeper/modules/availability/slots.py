"""Pure slot engine: expand weekly rules into slots and drop the busy ones.

Nothing here touches the database or the clock; the availability service feeds
in rules, busy intervals and `now`, and gets back sorted UTC slots.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Protocol

from slotkeeper.shared.timewindows import combine_local, day_of_week, overlaps, pad


@dataclass(frozen=True, slots=True)
class Slot:
    """Candidate bookable window, UTC."""

    start: datetime
    end: datetime


@dataclass(frozen=True, slots=True)
class BusyInterval:
    """Range during which the host is unavailable, UTC."""

    start: datetime
    end: datetime
    source: str = "booking"


@dataclass(frozen=True, slots=True)
class SlotPolicy:
    """Cut-offs applied to every candidate slot."""

    minimum_notice: timedelta = timedelta(minutes=120)
    horizon: timedelta | None = None


class RuleLike(Protocol):
    day_of_week: int
    start_time: time
    end_time: time
    buffer_minutes: int
    max_bookings_per_day: int | None


def effective_buffer(rule_buffer: int | None, override: int | None = None) -> int:
    """Host settings override, else the rule's own buffer, else zero."""
    if override is not None:
        return override
    return rule_buffer or 0


def resolve_duration(
    *,
    event_type_minutes: int | None,
    settings_minutes: int | None,
    requested_minutes: int | None,
    default_minutes: int,
    min_minutes: int,
    max_minutes: int,
) -> int:
    """Pick slot length by event type, host settings, request, default; clamp to bounds."""
    for candidate in (event_type_minutes, settings_minutes, requested_minutes):
        if candidate is not None:
            chosen = candidate
            break
    else:
        chosen = default_minutes
    return max(min_minutes, min(max_minutes, chosen))


def expand_rule(
    rule: RuleLike,
    target_date: date,
    zone_name: str,
    duration_minutes: int,
    buffer_minutes: int = 0,
) -> list[Slot]:
    """Cut the rule's local window on `target_date` into fixed-length UTC slots.

    Consecutive slots are separated by `buffer_minutes`. The last slot must end
    at or before the window end.
    """
    if duration_minutes <= 0:
        raise ValueError("duration_minutes must be positive")

    window_start = combine_local(target_date, rule.start_time, zone_name)
    window_end = combine_local(target_date, rule.end_time, zone_name)
    if window_start >= window_end:
        return []

    duration = timedelta(minutes=duration_minutes)
    stride = duration + timedelta(minutes=max(buffer_minutes, 0))

    slots: list[Slot] = []
    cursor = window_start
    while cursor + duration <= window_end:
        slots.append(Slot(start=cursor, end=cursor + duration))
        cursor += stride
    return slots


def conflicts(slot: Slot, busy: Iterable[BusyInterval], buffer_minutes: int) -> bool:
    """True if the slot overlaps any interval, raw or with the slot padded by the buffer."""
    padded_start, padded_end = pad(slot.start, slot.end, buffer_minutes)
    for interval in busy:
        raw_overlap = overlaps(slot.start, slot.end, interval.start, interval.end)
        buffered_overlap = overlaps(padded_start, padded_end, interval.start, interval.end)
        if raw_overlap or buffered_overlap:
            return True
    return False


def filter_slots(
    candidates: Iterable[Slot],
    *,
    buffer_minutes: int,
    bookings: Sequence[BusyInterval],
    calendar_busy: Sequence[BusyInterval],
    now: datetime,
    policy: SlotPolicy,
) -> list[Slot]:
    """Drop slots inside the notice window, past the horizon, or clashing with busy time."""
    earliest_start = now + policy.minimum_notice
    latest_start = now + policy.horizon if policy.horizon is not None else None

    available: list[Slot] = []
    for slot in candidates:
        if slot.start < earliest_start:
            continue
        if latest_start is not None and slot.start > latest_start:
            continue
        if conflicts(slot, bookings, buffer_minutes):
            continue
        if conflicts(slot, calendar_busy, buffer_minutes):
            continue
        available.append(slot)
    return available


def compute_available_slots(
    rules: Iterable[RuleLike],
    target_date: date,
    zone_name: str,
    duration_minutes: int,
    *,
    bookings: Sequence[BusyInterval],
    calendar_busy: Sequence[BusyInterval],
    now: datetime,
    policy: SlotPolicy,
    buffer_override: int | None = None,
    bookings_on_date: int = 0,
) -> list[Slot]:
    """Available slots for one host and date, across all of the day's rules.

    Slots produced by overlapping rules are merged, so an identical window is
    returned once.
    """
    weekday = day_of_week(target_date)
    accumulated: list[Slot] = []
    for rule in rules:
        if rule.day_of_week != weekday:
            continue
        if rule.max_bookings_per_day is not None and bookings_on_date >= rule.max_bookings_per_day:
            continue

        buffer_minutes = effective_buffer(rule.buffer_minutes, buffer_override)
        candidates = expand_rule(rule, target_date, zone_name, duration_minutes, buffer_minutes)
        accumulated.extend(
            filter_slots(
                candidates,
                buffer_minutes=buffer_minutes,
                bookings=bookings,
                calendar_busy=calendar_busy,
                now=now,
                policy=policy,
            ),
        )

    unique = dict.fromkeys(accumulated)
    return sorted(unique, key=lambda slot: (slot.start, slot.end))
