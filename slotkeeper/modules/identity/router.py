"""Identity API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from slotkeeper.modules.identity.schemas import (
    AccessToken,
    LoginRequest,
    UserCreate,
    UserRead,
    UserSettingsRead,
    UserSettingsUpdate,
)
from slotkeeper.modules.identity.service import IdentityService, get_current_user, get_identity_service

router = APIRouter(prefix="/identity", tags=["identity"])


@router.post("/auth/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def register(
    payload: UserCreate,
    service: IdentityService = Depends(get_identity_service),
) -> UserRead:
    """Register a new host account."""
    user = await service.register(payload)
    return UserRead.model_validate(user)


@router.post("/auth/login", response_model=AccessToken)
async def login(
    payload: LoginRequest,
    service: IdentityService = Depends(get_identity_service),
) -> AccessToken:
    """Sign in by email/password and return JWT access token."""
    return await service.login(payload)


@router.get("/users/me", response_model=UserRead)
async def get_me(current_user=Depends(get_current_user)) -> UserRead:
    """Return profile of authenticated user."""
    return UserRead.model_validate(current_user)


@router.get("/users/me/settings", response_model=UserSettingsRead)
async def get_my_settings(
    service: IdentityService = Depends(get_identity_service),
    current_user=Depends(get_current_user),
) -> UserSettingsRead:
    """Return scheduling preferences of authenticated host."""
    return UserSettingsRead.model_validate(await service.get_settings(current_user))


@router.put("/users/me/settings", response_model=UserSettingsRead)
async def update_my_settings(
    payload: UserSettingsUpdate,
    service: IdentityService = Depends(get_identity_service),
    current_user=Depends(get_current_user),
) -> UserSettingsRead:
    """Update scheduling preferences of authenticated host."""
    return UserSettingsRead.model_validate(await service.update_settings(payload, current_user))
