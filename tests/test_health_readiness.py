from __future__ import annotations

import pytest
from fastapi import HTTPException

import slotkeeper.main as main_module


@pytest.mark.asyncio
async def test_readiness_check_returns_ready_when_database_is_available(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    async def _ready() -> bool:
        return True

    monkeypatch.setattr(main_module, "_is_database_ready", _ready)

    response = await main_module.readiness_check()

    assert response["status"] == "ready"
    assert response["database"] == "ok"
    assert "timestamp" in response


@pytest.mark.asyncio
async def test_readiness_check_returns_503_when_database_is_unavailable(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    async def _not_ready() -> bool:
        return False

    monkeypatch.setattr(main_module, "_is_database_ready", _not_ready)

    with pytest.raises(HTTPException) as exc:
        await main_module.readiness_check()
    assert exc.value.status_code == 503


@pytest.mark.asyncio
async def test_healthcheck_is_static() -> None:
    assert await main_module.healthcheck() == {"status": "ok"}


def test_api_routes_are_mounted_under_prefix() -> None:
    paths = set(main_module.app.openapi()["paths"])

    assert "/api/v1/public/{username}/slots" in paths
    assert "/api/v1/public/{username}/booking-requests" in paths
    assert "/api/v1/booking-requests/confirm/{token}" in paths
    assert "/api/v1/booking-requests/host-approval/{token}/approve" in paths
    assert "/api/v1/availability/slots" in paths
