"""Time-window arithmetic on absolute UTC instants.

Every comparison in the slot engine goes through these helpers so that local
wall-clock times are converted exactly once, at the edge, and overlap checks
always run on aware UTC datetimes.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def get_zone(name: str) -> ZoneInfo:
    """Resolve IANA zone name, raising ValueError for unknown zones."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {name}") from exc


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open interval overlap test: [a_start, a_end) vs [b_start, b_end)."""
    return a_start < b_end and a_end > b_start


def pad(start: datetime, end: datetime, minutes: int) -> tuple[datetime, datetime]:
    """Widen interval by `minutes` on both sides."""
    delta = timedelta(minutes=minutes)
    return start - delta, end + delta


def to_utc(local: datetime, zone_name: str) -> datetime:
    """Interpret naive local wall-clock time in zone and return UTC instant."""
    if local.tzinfo is not None:
        return local.astimezone(timezone.utc)
    return local.replace(tzinfo=get_zone(zone_name)).astimezone(timezone.utc)


def from_utc(instant: datetime, zone_name: str) -> datetime:
    """Return aware local datetime for UTC instant."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(get_zone(zone_name))


def combine_local(day: date, wall_time: time, zone_name: str) -> datetime:
    """Place local wall-clock time on a calendar day and return UTC instant."""
    return to_utc(datetime.combine(day, wall_time.replace(tzinfo=None)), zone_name)


def local_day_bounds(day: date, zone_name: str) -> tuple[datetime, datetime]:
    """UTC instants of local midnight and the following local midnight."""
    start = combine_local(day, time.min, zone_name)
    end = combine_local(day + timedelta(days=1), time.min, zone_name)
    return start, end


def day_of_week(day: date) -> int:
    """Weekday number with 0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7
