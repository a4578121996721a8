"""Identity business logic layer."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from slotkeeper.core.config import get_settings
from slotkeeper.core.database import get_db_session
from slotkeeper.core.security import create_access_token, decode_token, hash_password, oauth2_scheme, verify_password
from slotkeeper.modules.identity.models import User, UserSettings
from slotkeeper.modules.identity.repository import IdentityRepository
from slotkeeper.modules.identity.schemas import AccessToken, LoginRequest, UserCreate, UserSettingsUpdate
from slotkeeper.shared.exceptions import ConflictException, NotFoundException, UnauthorizedException

settings = get_settings()
logger = logging.getLogger(__name__)


class IdentityService:
    """Identity domain service."""

    def __init__(self, repository: IdentityRepository) -> None:
        self.repository = repository

    async def register(self, payload: UserCreate) -> User:
        """Register new host account with default scheduling settings."""
        if await self.repository.get_user_by_email(payload.email) is not None:
            raise ConflictException("User with this email already exists")
        if await self.repository.get_user_by_username(payload.username) is not None:
            raise ConflictException("Username is already taken")

        user = await self.repository.create_user(
            email=payload.email,
            username=payload.username,
            name=payload.name,
            password_hash=hash_password(payload.password),
            timezone=payload.timezone,
        )
        await self.repository.get_or_create_settings(user.id, settings.default_booking_horizon_days)
        logger.info("Registered host %s", user.id)
        return user

    async def login(self, payload: LoginRequest) -> AccessToken:
        """Authenticate host and issue JWT access token."""
        user = await self.repository.get_user_by_email(payload.email)
        if user is None or not verify_password(payload.password, user.password_hash):
            raise UnauthorizedException("Invalid credentials")
        if not user.is_active:
            raise UnauthorizedException("User is inactive")
        return AccessToken(access_token=create_access_token(subject=str(user.id)))

    async def get_user_from_access_token(self, token: str) -> User:
        """Resolve user from access token."""
        payload = decode_token(token)
        if payload.get("type") != "access":
            raise UnauthorizedException("Invalid access token")

        subject = payload.get("sub")
        if not subject:
            raise UnauthorizedException("Token subject is missing")

        user = await self.repository.get_user_by_id(UUID(subject))
        if user is None:
            raise UnauthorizedException("User not found")
        if not user.is_active:
            raise UnauthorizedException("User is inactive")
        return user

    async def get_host_by_username(self, username: str) -> User:
        """Resolve public booking page owner."""
        user = await self.repository.get_user_by_username(username)
        if user is None:
            raise NotFoundException("User not found")
        return user

    async def get_settings(self, actor: User) -> UserSettings:
        return await self.repository.get_or_create_settings(actor.id, settings.default_booking_horizon_days)

    async def update_settings(self, payload: UserSettingsUpdate, actor: User) -> UserSettings:
        """Apply partial scheduling preference update."""
        user_settings = await self.get_settings(actor)
        for field_name, value in payload.model_dump(exclude_unset=True).items():
            if field_name == "booking_horizon_days" and value is None:
                continue
            setattr(user_settings, field_name, value)
        return await self.repository.save_settings(user_settings)


async def get_identity_service(session: AsyncSession = Depends(get_db_session)) -> IdentityService:
    """Dependency to provide identity service."""
    return IdentityService(IdentityRepository(session))


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    service: IdentityService = Depends(get_identity_service),
) -> User:
    """Resolve currently authenticated user from bearer token."""
    return await service.get_user_from_access_token(token)
