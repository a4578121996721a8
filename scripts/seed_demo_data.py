"""Seed idempotent demo data for local/non-production environments."""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass
from datetime import time

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from slotkeeper.core.config import get_settings
from slotkeeper.core.database import SessionLocal, close_engine
from slotkeeper.core.security import hash_password, verify_password
from slotkeeper.modules.availability.models import AvailabilityRule
from slotkeeper.modules.event_types.models import EventType
from slotkeeper.modules.identity.models import User
from slotkeeper.modules.identity.repository import IdentityRepository

DEMO_PASSWORD = "DemoPass123!"

DEMO_HOST_EMAIL = "demo-host@slotkeeper.dev"
DEMO_HOST_USERNAME = "demo-host"
DEMO_HOST_TIMEZONE = "Europe/Berlin"

# Monday .. Friday, 0 = Sunday
DEMO_WORKING_DAYS = (1, 2, 3, 4, 5)
DEMO_DAY_START = time(9, 0)
DEMO_DAY_END = time(17, 0)
DEMO_BUFFER_MINUTES = 15

DEMO_EVENT_TYPES = (
    {
        "slug": "intro-call",
        "name": "Intro call",
        "duration_minutes": 30,
        "requires_confirmation": False,
    },
    {
        "slug": "consultation",
        "name": "Consultation",
        "duration_minutes": 60,
        "requires_confirmation": True,
    },
)


@dataclass(slots=True)
class SeedStats:
    host_created: bool = False
    rules_created: int = 0
    event_types_created: int = 0
    host_id: str | None = None


async def _ensure_host(session: AsyncSession) -> tuple[User, bool]:
    user = await session.scalar(select(User).where(User.email == DEMO_HOST_EMAIL))
    created = False
    if user is None:
        user = User(
            email=DEMO_HOST_EMAIL,
            username=DEMO_HOST_USERNAME,
            name="Demo Host",
            password_hash=hash_password(DEMO_PASSWORD),
            timezone=DEMO_HOST_TIMEZONE,
            is_active=True,
        )
        session.add(user)
        created = True
    else:
        if not verify_password(DEMO_PASSWORD, user.password_hash):
            user.password_hash = hash_password(DEMO_PASSWORD)
        if user.timezone != DEMO_HOST_TIMEZONE:
            user.timezone = DEMO_HOST_TIMEZONE
        if not user.is_active:
            user.is_active = True

    await session.flush()
    return user, created


async def _ensure_rules(session: AsyncSession, host: User) -> int:
    created = 0
    for weekday in DEMO_WORKING_DAYS:
        existing = await session.scalar(
            select(AvailabilityRule).where(
                AvailabilityRule.user_id == host.id,
                AvailabilityRule.day_of_week == weekday,
                AvailabilityRule.start_time == DEMO_DAY_START,
                AvailabilityRule.end_time == DEMO_DAY_END,
            ),
        )
        if existing is not None:
            continue
        session.add(
            AvailabilityRule(
                user_id=host.id,
                day_of_week=weekday,
                start_time=DEMO_DAY_START,
                end_time=DEMO_DAY_END,
                buffer_minutes=DEMO_BUFFER_MINUTES,
            ),
        )
        created += 1

    await session.flush()
    return created


async def _ensure_event_types(session: AsyncSession, host: User) -> int:
    created = 0
    for values in DEMO_EVENT_TYPES:
        existing = await session.scalar(
            select(EventType).where(EventType.user_id == host.id, EventType.slug == values["slug"]),
        )
        if existing is not None:
            continue
        session.add(EventType(user_id=host.id, **values))
        created += 1

    await session.flush()
    return created


async def _run_seed(*, allow_production: bool) -> SeedStats:
    settings = get_settings()
    app_env = settings.app_env.strip().lower()
    if app_env in {"production", "prod"} and not allow_production:
        raise RuntimeError(
            "Refusing to seed demo data in production. "
            "Re-run with --allow-production only if you are absolutely sure.",
        )

    stats = SeedStats()

    async with SessionLocal() as session:
        try:
            host, stats.host_created = await _ensure_host(session)
            await IdentityRepository(session).get_or_create_settings(host.id, settings.default_booking_horizon_days)
            stats.rules_created = await _ensure_rules(session, host)
            stats.event_types_created = await _ensure_event_types(session, host)
            stats.host_id = str(host.id)

            await session.commit()
        except Exception:
            await session.rollback()
            raise

    return stats


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Seed idempotent demo data for SlotKeeper (host account, weekday "
            "availability rules, event types)."
        ),
    )
    parser.add_argument(
        "--allow-production",
        action="store_true",
        help="Allow seeding even when APP_ENV is production/prod.",
    )
    return parser


def _print_summary(stats: SeedStats) -> None:
    settings = get_settings()
    print("Demo seed completed.")
    print(f"- Host created: {stats.host_created}")
    print(f"- Host id: {stats.host_id}")
    print(f"- Availability rules created: {stats.rules_created}")
    print(f"- Event types created: {stats.event_types_created}")
    print("")
    print("Demo credentials (non-production only):")
    print(f"- host: {DEMO_HOST_EMAIL} / {DEMO_PASSWORD}")
    print(f"- booking page: {settings.public_base_url}{settings.api_prefix}/public/{DEMO_HOST_USERNAME}/slots")


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()

    try:
        stats = asyncio.run(_run_seed(allow_production=args.allow_production))
    except Exception as exc:
        print(f"Demo seed failed: {exc}")
        return 1
    finally:
        asyncio.run(close_engine())

    _print_summary(stats)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
