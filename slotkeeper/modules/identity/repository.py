"""Identity repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from slotkeeper.modules.identity.models import User, UserSettings


class IdentityRepository:
    """DB operations for identity domain."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_user_by_email(self, email: str) -> User | None:
        stmt = select(User).where(User.email == email)
        return await self.session.scalar(stmt)

    async def get_user_by_id(self, user_id: UUID) -> User | None:
        stmt = select(User).where(User.id == user_id)
        return await self.session.scalar(stmt)

    async def get_user_by_username(self, username: str) -> User | None:
        stmt = select(User).where(User.username == username, User.is_active.is_(True))
        return await self.session.scalar(stmt)

    async def create_user(
        self,
        email: str,
        username: str,
        name: str,
        password_hash: str,
        timezone: str,
    ) -> User:
        user = User(
            email=email,
            username=username,
            name=name,
            password_hash=password_hash,
            timezone=timezone,
        )
        self.session.add(user)
        await self.session.flush()
        return user

    async def get_settings(self, user_id: UUID) -> UserSettings | None:
        stmt = select(UserSettings).where(UserSettings.user_id == user_id)
        return await self.session.scalar(stmt)

    async def get_or_create_settings(self, user_id: UUID, default_horizon_days: int) -> UserSettings:
        user_settings = await self.get_settings(user_id)
        if user_settings is None:
            user_settings = UserSettings(user_id=user_id, booking_horizon_days=default_horizon_days)
            self.session.add(user_settings)
            await self.session.flush()
        return user_settings

    async def save_settings(self, user_settings: UserSettings) -> UserSettings:
        await self.session.flush()
        return user_settings
