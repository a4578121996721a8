from __future__ import annotations

import pytest

import slotkeeper.workers.booking_request_expiry_worker as worker_module


class FakeSession:
    def __init__(self) -> None:
        self.commits = 0

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None

    async def commit(self) -> None:
        self.commits += 1


class FakeBookingRequestService:
    def __init__(self) -> None:
        self.limits: list[int] = []

    async def expire_stale(self, limit: int) -> int:
        self.limits.append(limit)
        return 3


@pytest.mark.asyncio
async def test_run_cycle_expires_batch_and_commits(monkeypatch: pytest.MonkeyPatch) -> None:
    session = FakeSession()
    service = FakeBookingRequestService()
    monkeypatch.setenv("EXPIRY_WORKER_BATCH_SIZE", "25")
    monkeypatch.setattr(worker_module, "SessionLocal", lambda: session)
    monkeypatch.setattr(worker_module, "build_booking_request_service", lambda _: service)

    expired = await worker_module.run_cycle()

    assert expired == 3
    assert service.limits == [25]
    assert session.commits == 1
