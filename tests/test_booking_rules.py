from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest

import slotkeeper.modules.booking.service as booking_service_module
from slotkeeper.core.enums import BookingStatusEnum
from slotkeeper.core.metrics import BOOKING_CONFLICTS_TOTAL
from slotkeeper.modules.booking.repository import OverlappingBookingError
from slotkeeper.modules.booking.schemas import BookingCancelRequest, BookingCreate
from slotkeeper.modules.booking.service import BookingService
from slotkeeper.shared.exceptions import (
    ConflictException,
    NotFoundException,
    SlotTakenException,
    UnauthorizedException,
    ValidationException,
)
from slotkeeper.shared.timewindows import overlaps


@dataclass
class FakeBooking:
    host_id: UUID
    customer_name: str
    customer_email: str
    customer_phone: str | None
    start_at: datetime
    end_at: datetime
    notes: str | None
    event_type_id: UUID | None
    status: BookingStatusEnum = BookingStatusEnum.CONFIRMED
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    id: UUID = field(default_factory=uuid4)


class FakeBookingRepository:
    """In-memory bookings; refuses overlapping confirmed rows like the exclusion constraint does."""

    def __init__(self) -> None:
        self.bookings: list[FakeBooking] = []

    def _overlapping(self, host_id: UUID, start_at: datetime, end_at: datetime) -> FakeBooking | None:
        for booking in self.bookings:
            if (
                booking.host_id == host_id
                and booking.status == BookingStatusEnum.CONFIRMED
                and overlaps(booking.start_at, booking.end_at, start_at, end_at)
            ):
                return booking
        return None

    async def create_booking(self, **fields) -> FakeBooking:
        if self._overlapping(fields["host_id"], fields["start_at"], fields["end_at"]) is not None:
            raise OverlappingBookingError("ex_bookings_host_confirmed_overlap")
        booking = FakeBooking(**fields)
        self.bookings.append(booking)
        return booking

    async def find_overlapping_confirmed(self, host_id: UUID, start_at: datetime, end_at: datetime):
        return self._overlapping(host_id, start_at, end_at)

    async def get_booking_by_id(self, booking_id: UUID) -> FakeBooking | None:
        return next((booking for booking in self.bookings if booking.id == booking_id), None)

    async def save(self, booking: FakeBooking) -> FakeBooking:
        return booking


class FakeAuditRepository:
    def __init__(self) -> None:
        self.logs: list[dict] = []
        self.events: list[dict] = []

    async def create_audit_log(self, **kwargs) -> None:
        self.logs.append(kwargs)

    async def create_outbox_event(self, **kwargs) -> None:
        self.events.append(kwargs)


def make_service() -> tuple[BookingService, FakeBookingRepository, FakeAuditRepository]:
    repository = FakeBookingRepository()
    audit_repository = FakeAuditRepository()
    service = BookingService(
        booking_repository=repository,  # type: ignore[arg-type]
        audit_repository=audit_repository,  # type: ignore[arg-type]
    )
    return service, repository, audit_repository


def make_host(timezone: str = "UTC") -> SimpleNamespace:
    return SimpleNamespace(id=uuid4(), timezone=timezone)


def make_payload(start_hour: int, end_hour: int, end_minute: int = 0) -> BookingCreate:
    return BookingCreate(
        customer_name="Ada Lovelace",
        customer_email="ada@example.com",
        start_at=datetime(2026, 3, 2, start_hour, 0, tzinfo=UTC),
        end_at=datetime(2026, 3, 2, end_hour, end_minute, tzinfo=UTC),
    )


@pytest.mark.asyncio
async def test_create_booking_writes_audit_and_outbox() -> None:
    service, repository, audit_repository = make_service()
    host = make_host()

    booking = await service.create_booking(make_payload(10, 11), host)  # type: ignore[arg-type]

    assert booking.status == BookingStatusEnum.CONFIRMED
    assert repository.bookings == [booking]
    assert audit_repository.logs[0]["action"] == "booking.direct.create"
    assert audit_repository.events[0]["event_type"] == "booking.created"
    assert audit_repository.events[0]["payload"]["customer_email"] == "ada@example.com"


@pytest.mark.asyncio
async def test_create_booking_rejects_inverted_range() -> None:
    service, _, _ = make_service()

    with pytest.raises(ValidationException):
        await service.create_booking(make_payload(11, 10), make_host())  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_overlapping_booking_is_reported_as_taken_slot() -> None:
    service, repository, _ = make_service()
    host = make_host("America/New_York")
    await service.create_booking(make_payload(14, 15), host)  # type: ignore[arg-type]
    before = BOOKING_CONFLICTS_TOTAL.labels(stage="direct")._value.get()

    with pytest.raises(SlotTakenException) as exc_info:
        await service.create_booking(make_payload(14, 14, 30), host)  # type: ignore[arg-type]

    error = exc_info.value
    assert error.status_code == 409
    assert error.to_payload() == {
        "error": {
            "code": "time_slot_taken",
            "message": "Time slot is no longer available",
            "host_id": str(host.id),
            "date": "2026-03-02",
            "suggest_alternative": True,
        },
    }
    assert len(repository.bookings) == 1
    assert BOOKING_CONFLICTS_TOTAL.labels(stage="direct")._value.get() == before + 1


@pytest.mark.asyncio
async def test_adjacent_bookings_are_allowed() -> None:
    service, repository, _ = make_service()
    host = make_host()

    await service.create_booking(make_payload(10, 11), host)  # type: ignore[arg-type]
    await service.create_booking(make_payload(11, 12), host)  # type: ignore[arg-type]

    assert len(repository.bookings) == 2


@pytest.mark.asyncio
async def test_constraint_violation_maps_to_taken_slot() -> None:
    service, repository, audit_repository = make_service()
    host = make_host()
    await service.create_booking(make_payload(10, 11), host)  # type: ignore[arg-type]

    async def no_overlap(*args, **kwargs):
        return None

    repository.find_overlapping_confirmed = no_overlap  # type: ignore[method-assign]

    with pytest.raises(SlotTakenException):
        await service.create_booking(make_payload(10, 11), host)  # type: ignore[arg-type]

    assert len(repository.bookings) == 1
    assert len(audit_repository.events) == 1


@pytest.mark.asyncio
async def test_cancel_booking_frees_range_and_cannot_repeat(monkeypatch: pytest.MonkeyPatch) -> None:
    fixed_now = datetime(2026, 2, 19, 12, 0, tzinfo=UTC)
    monkeypatch.setattr(booking_service_module, "utc_now", lambda: fixed_now)
    service, repository, audit_repository = make_service()
    host = make_host()
    booking = await service.create_booking(make_payload(10, 11), host)  # type: ignore[arg-type]

    cancelled = await service.cancel_booking(booking.id, BookingCancelRequest(reason="sick"), host)  # type: ignore[arg-type]

    assert cancelled.status == BookingStatusEnum.CANCELLED
    assert cancelled.cancelled_at == fixed_now
    assert audit_repository.events[-1]["event_type"] == "booking.cancelled"
    assert audit_repository.events[-1]["payload"]["reason"] == "sick"

    with pytest.raises(ConflictException) as exc_info:
        await service.cancel_booking(booking.id, BookingCancelRequest(), host)  # type: ignore[arg-type]
    assert exc_info.value.code == "invalid_state"

    rebooked = await service.create_booking(make_payload(10, 11), host)  # type: ignore[arg-type]
    assert rebooked.status == BookingStatusEnum.CONFIRMED
    assert len(repository.bookings) == 2


@pytest.mark.asyncio
async def test_get_booking_checks_owner() -> None:
    service, _, _ = make_service()
    host = make_host()
    booking = await service.create_booking(make_payload(10, 11), host)  # type: ignore[arg-type]

    with pytest.raises(UnauthorizedException):
        await service.get_booking(booking.id, make_host())  # type: ignore[arg-type]
    with pytest.raises(NotFoundException):
        await service.get_booking(uuid4(), host)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_hosts_do_not_block_each_other() -> None:
    service, repository, _ = make_service()

    await service.create_booking(make_payload(10, 11), make_host())  # type: ignore[arg-type]
    await service.create_booking(make_payload(10, 11), make_host())  # type: ignore[arg-type]

    assert len(repository.bookings) == 2
