from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest

from slotkeeper.core.enums import BookingRequestStatusEnum, BookingStatusEnum
from slotkeeper.modules.booking.service import BookingService
from slotkeeper.modules.booking.repository import OverlappingBookingError
from slotkeeper.modules.booking_requests import service as booking_requests_service_module
from slotkeeper.modules.booking_requests.schemas import BookingRequestCreate
from slotkeeper.modules.booking_requests.service import SLOT_TAKEN_REASON, BookingRequestService
from slotkeeper.modules.event_types.service import EventTypesService
from slotkeeper.shared.exceptions import (
    ConflictException,
    ExpiredException,
    NotFoundException,
    SlotTakenException,
    ValidationException,
)
from slotkeeper.shared.timewindows import overlaps

Status = BookingRequestStatusEnum
NOW = datetime(2026, 2, 19, 12, 0, tzinfo=UTC)
SLOT_START = datetime(2026, 2, 20, 10, 0, tzinfo=UTC)
SLOT_END = datetime(2026, 2, 20, 11, 0, tzinfo=UTC)


@dataclass
class FakeBookingRequest:
    host_id: UUID
    event_type_id: UUID | None
    customer_name: str
    customer_email: str
    customer_phone: str | None
    start_at: datetime
    end_at: datetime
    notes: str | None
    confirmation_token: str
    expires_at: datetime
    status: BookingRequestStatusEnum = BookingRequestStatusEnum.PENDING
    host_approval_token: str | None = None
    host_approval_expires_at: datetime | None = None
    customer_confirmed_at: datetime | None = None
    host_decision_at: datetime | None = None
    cancellation_reason: str | None = None
    booking_id: UUID | None = None
    id: UUID = field(default_factory=uuid4)


def is_live(request: FakeBookingRequest, now: datetime) -> bool:
    if request.status == Status.PENDING:
        return request.expires_at > now
    if request.status == Status.PENDING_HOST_APPROVAL:
        return request.host_approval_expires_at is not None and request.host_approval_expires_at > now
    return False


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
    id: UUID = field(default_factory=uuid4)


class FakeBookingRepository:
    """Refuses overlapping confirmed rows on insert, like the exclusion constraint."""

    def __init__(self) -> None:
        self.bookings: list[FakeBooking] = []

    def _overlapping(self, host_id: UUID, start_at: datetime, end_at: datetime) -> FakeBooking | None:
        for booking in self.bookings:
            if booking.host_id == host_id and overlaps(booking.start_at, booking.end_at, start_at, end_at):
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


class FakeAuditRepository:
    def __init__(self) -> None:
        self.logs: list[dict] = []
        self.events: list[dict] = []

    async def create_audit_log(self, **kwargs) -> None:
        self.logs.append(kwargs)

    async def create_outbox_event(self, **kwargs) -> None:
        self.events.append(kwargs)


class FakeBookingRequestRepository:
    def __init__(self) -> None:
        self.requests: list[FakeBookingRequest] = []

    async def create_request(self, **fields) -> FakeBookingRequest:
        request = FakeBookingRequest(**fields)
        self.requests.append(request)
        return request

    async def get_by_confirmation_token(self, token: str) -> FakeBookingRequest | None:
        return next((item for item in self.requests if item.confirmation_token == token), None)

    async def get_by_host_approval_token(self, token: str) -> FakeBookingRequest | None:
        return next((item for item in self.requests if item.host_approval_token == token), None)

    async def find_overlapping_live(self, host_id: UUID, start_at: datetime, end_at: datetime, now: datetime):
        for item in self.requests:
            if item.host_id == host_id and is_live(item, now) and overlaps(item.start_at, item.end_at, start_at, end_at):
                return item
        return None

    async def find_overdue(self, now: datetime, limit: int) -> list[FakeBookingRequest]:
        overdue = [
            item
            for item in self.requests
            if item.status in (Status.PENDING, Status.PENDING_HOST_APPROVAL) and not is_live(item, now)
        ]
        return overdue[:limit]

    async def save(self, request: FakeBookingRequest) -> FakeBookingRequest:
        return request


class FakeIdentityRepository:
    def __init__(self, *users: SimpleNamespace, user_settings: SimpleNamespace | None = None) -> None:
        self.users = list(users)
        self.user_settings = user_settings

    async def get_settings(self, user_id: UUID):
        return self.user_settings

    async def get_user_by_username(self, username: str):
        return next((user for user in self.users if user.username == username), None)

    async def get_user_by_id(self, user_id: UUID):
        return next((user for user in self.users if user.id == user_id), None)


class FakeEventTypesRepository:
    def __init__(self, *event_types: SimpleNamespace) -> None:
        self.event_types = list(event_types)

    async def get_event_type_by_id(self, event_type_id: UUID):
        return next((item for item in self.event_types if item.id == event_type_id), None)


@dataclass
class Harness:
    service: BookingRequestService
    requests: FakeBookingRequestRepository
    bookings: FakeBookingRepository
    audit: FakeAuditRepository
    booking_service: BookingService
    host: SimpleNamespace

    def outbox(self, event_type: str) -> list[dict]:
        return [event for event in self.audit.events if event["event_type"] == event_type]


def make_host() -> SimpleNamespace:
    return SimpleNamespace(id=uuid4(), username="host", name="Grace Hopper", email="grace@example.com", timezone="UTC")


def make_event_type(host: SimpleNamespace, **overrides) -> SimpleNamespace:
    values = {
        "id": uuid4(),
        "user_id": host.id,
        "is_active": True,
        "duration_minutes": 60,
        "requires_confirmation": False,
        "minimum_notice_minutes": 120,
        "maximum_advance_minutes": 60 * 24 * 30,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def make_harness(
    *event_types: SimpleNamespace,
    host: SimpleNamespace | None = None,
    user_settings: SimpleNamespace | None = None,
) -> Harness:
    host = host or make_host()
    requests = FakeBookingRequestRepository()
    bookings = FakeBookingRepository()
    audit = FakeAuditRepository()
    booking_service = BookingService(bookings, audit)  # type: ignore[arg-type]
    service = BookingRequestService(
        repository=requests,  # type: ignore[arg-type]
        booking_service=booking_service,
        identity_repository=FakeIdentityRepository(host, user_settings=user_settings),  # type: ignore[arg-type]
        event_types_service=EventTypesService(FakeEventTypesRepository(*event_types)),  # type: ignore[arg-type]
        audit_repository=audit,  # type: ignore[arg-type]
    )
    return Harness(service, requests, bookings, audit, booking_service, host)


def make_payload(
    start_at: datetime = SLOT_START,
    end_at: datetime = SLOT_END,
    event_type_id: UUID | None = None,
) -> BookingRequestCreate:
    return BookingRequestCreate(
        customer_name="Ada Lovelace",
        customer_email="ada@example.com",
        start_at=start_at,
        end_at=end_at,
        event_type_id=event_type_id,
    )


async def seed_request(harness: Harness, token: str) -> FakeBookingRequest:
    return await harness.requests.create_request(
        host_id=harness.host.id,
        event_type_id=None,
        customer_name="Ada Lovelace",
        customer_email="ada@example.com",
        customer_phone=None,
        start_at=SLOT_START,
        end_at=SLOT_END,
        notes=None,
        confirmation_token=token,
        expires_at=NOW + timedelta(minutes=30),
    )


@pytest.mark.asyncio
async def test_submit_creates_pending_hold_with_token() -> None:
    harness = make_harness()

    request = await harness.service.submit("host", make_payload(), now=NOW)

    assert request.status == Status.PENDING
    assert request.expires_at == NOW + timedelta(minutes=30)
    assert len(request.confirmation_token) >= 32

    [event] = harness.outbox("booking_request.submitted")
    assert event["payload"]["confirmation_token"] == request.confirmation_token
    assert event["payload"]["customer_email"] == "ada@example.com"
    assert all(
        not key.endswith("_token")
        for log in harness.audit.logs
        for key in log["payload"]
    )


@pytest.mark.asyncio
async def test_submit_validations() -> None:
    harness = make_harness()

    with pytest.raises(NotFoundException):
        await harness.service.submit("nobody", make_payload(), now=NOW)
    with pytest.raises(ValidationException):
        await harness.service.submit("host", make_payload(SLOT_END, SLOT_START), now=NOW)
    with pytest.raises(ValidationException):
        await harness.service.submit(
            "host",
            make_payload(NOW + timedelta(minutes=60), NOW + timedelta(minutes=120)),
            now=NOW,
        )

    assert harness.requests.requests == []


@pytest.mark.asyncio
async def test_submit_respects_event_type_window() -> None:
    host = make_host()
    event_type = make_event_type(host, minimum_notice_minutes=0, maximum_advance_minutes=60 * 24)
    inactive = make_event_type(host, is_active=False)
    harness = make_harness(event_type, inactive, host=host)

    soon = await harness.service.submit(
        "host",
        make_payload(NOW + timedelta(minutes=10), NOW + timedelta(minutes=70), event_type.id),
        now=NOW,
    )
    assert soon.event_type_id == event_type.id

    with pytest.raises(ValidationException):
        await harness.service.submit(
            "host",
            make_payload(NOW + timedelta(days=2), NOW + timedelta(days=2, hours=1), event_type.id),
            now=NOW,
        )
    with pytest.raises(ValidationException):
        await harness.service.submit("host", make_payload(event_type_id=inactive.id), now=NOW)
    with pytest.raises(NotFoundException):
        await harness.service.submit("host", make_payload(event_type_id=uuid4()), now=NOW)


@pytest.mark.asyncio
async def test_submit_enforces_duration_bounds() -> None:
    harness = make_harness()
    bounds = booking_requests_service_module.settings
    shortest = timedelta(minutes=bounds.min_slot_duration_minutes)
    longest = timedelta(minutes=bounds.max_slot_duration_minutes)

    rejected_lengths = (
        timedelta(minutes=1),
        shortest - timedelta(minutes=1),
        longest + timedelta(minutes=1),
        timedelta(hours=12),
    )
    for length in rejected_lengths:
        with pytest.raises(ValidationException):
            await harness.service.submit("host", make_payload(SLOT_START, SLOT_START + length), now=NOW)
    assert harness.requests.requests == []

    request = await harness.service.submit("host", make_payload(SLOT_START, SLOT_START + shortest), now=NOW)
    assert request.end_at - request.start_at == shortest


@pytest.mark.asyncio
async def test_submit_requires_event_type_duration() -> None:
    host = make_host()
    event_type = make_event_type(host, duration_minutes=30)
    harness = make_harness(event_type, host=host)

    with pytest.raises(ValidationException):
        await harness.service.submit("host", make_payload(SLOT_START, SLOT_END, event_type.id), now=NOW)

    request = await harness.service.submit(
        "host",
        make_payload(SLOT_START, SLOT_START + timedelta(minutes=30), event_type.id),
        now=NOW,
    )
    assert request.event_type_id == event_type.id


@pytest.mark.asyncio
async def test_submit_rejects_dates_beyond_booking_horizon() -> None:
    harness = make_harness()
    horizon_days = booking_requests_service_module.settings.default_booking_horizon_days
    beyond = NOW + timedelta(days=horizon_days, hours=1)
    within = NOW + timedelta(days=horizon_days - 1)

    with pytest.raises(ValidationException):
        await harness.service.submit("host", make_payload(beyond, beyond + timedelta(hours=1)), now=NOW)
    accepted = await harness.service.submit("host", make_payload(within, within + timedelta(hours=1)), now=NOW)
    assert accepted.status == Status.PENDING

    weekly = make_harness(user_settings=SimpleNamespace(booking_horizon_days=7))
    next_fortnight = NOW + timedelta(days=10)
    with pytest.raises(ValidationException):
        await weekly.service.submit(
            "host",
            make_payload(next_fortnight, next_fortnight + timedelta(hours=1)),
            now=NOW,
        )
    tomorrow = await weekly.service.submit("host", make_payload(), now=NOW)
    assert tomorrow.status == Status.PENDING


@pytest.mark.asyncio
async def test_submit_rejects_range_held_by_live_request_until_it_lapses() -> None:
    harness = make_harness()
    await harness.service.submit("host", make_payload(), now=NOW)

    with pytest.raises(SlotTakenException):
        await harness.service.submit("host", make_payload(), now=NOW + timedelta(minutes=5))

    later = await harness.service.submit("host", make_payload(), now=NOW + timedelta(minutes=31))
    assert later.status == Status.PENDING


@pytest.mark.asyncio
async def test_submit_rejects_range_of_confirmed_booking() -> None:
    harness = make_harness()
    await harness.booking_service.book(
        harness.host.id,
        "UTC",
        customer_name="Someone",
        customer_email="someone@example.com",
        customer_phone=None,
        start_at=SLOT_START + timedelta(minutes=30),
        end_at=SLOT_END + timedelta(minutes=30),
        notes=None,
        event_type_id=None,
        stage="direct",
    )

    with pytest.raises(SlotTakenException):
        await harness.service.submit("host", make_payload(), now=NOW)


@pytest.mark.asyncio
async def test_customer_confirm_books_exactly_once() -> None:
    harness = make_harness()
    request = await harness.service.submit("host", make_payload(), now=NOW)

    outcome = await harness.service.customer_confirm(request.confirmation_token, now=NOW + timedelta(minutes=10))

    assert outcome.ok
    assert outcome.already_confirmed is False
    assert request.status == Status.CONFIRMED
    assert request.customer_confirmed_at == NOW + timedelta(minutes=10)
    assert outcome.booking is not None
    assert request.booking_id == outcome.booking.id
    assert outcome.booking.status == BookingStatusEnum.CONFIRMED
    assert outcome.booking.start_at == SLOT_START
    assert outcome.booking.end_at == SLOT_END
    assert outcome.booking.customer_email == "ada@example.com"
    assert len(harness.outbox("booking.created")) == 1

    again = await harness.service.customer_confirm(request.confirmation_token, now=NOW + timedelta(minutes=11))

    assert again.ok
    assert again.already_confirmed is True
    assert len(harness.bookings.bookings) == 1


@pytest.mark.asyncio
async def test_customer_confirm_after_expiry_marks_request_expired() -> None:
    harness = make_harness()
    request = await harness.service.submit("host", make_payload(), now=NOW)

    outcome = await harness.service.customer_confirm(request.confirmation_token, now=NOW + timedelta(minutes=31))

    assert isinstance(outcome.error, ExpiredException)
    assert outcome.error.status_code == 400
    assert request.status == Status.EXPIRED
    assert harness.bookings.bookings == []
    assert len(harness.outbox("booking_request.expired")) == 1

    with pytest.raises(ExpiredException):
        await harness.service.customer_confirm(request.confirmation_token, now=NOW + timedelta(minutes=32))


@pytest.mark.asyncio
async def test_customer_confirm_at_exact_deadline_still_books() -> None:
    harness = make_harness()
    request = await harness.service.submit("host", make_payload(), now=NOW)

    outcome = await harness.service.customer_confirm(request.confirmation_token, now=request.expires_at)

    assert outcome.ok
    assert request.status == Status.CONFIRMED


@pytest.mark.asyncio
async def test_customer_confirm_cancels_when_slot_was_taken_meanwhile() -> None:
    harness = make_harness()
    request = await harness.service.submit("host", make_payload(), now=NOW)
    await harness.booking_service.book(
        harness.host.id,
        "UTC",
        customer_name="Walk-in",
        customer_email="walkin@example.com",
        customer_phone=None,
        start_at=SLOT_START,
        end_at=SLOT_END,
        notes=None,
        event_type_id=None,
        stage="direct",
    )

    outcome = await harness.service.customer_confirm(request.confirmation_token, now=NOW + timedelta(minutes=5))

    assert isinstance(outcome.error, SlotTakenException)
    assert outcome.error.details["suggest_alternative"] is True
    assert request.status == Status.CANCELLED
    assert request.cancellation_reason == SLOT_TAKEN_REASON
    assert len(harness.bookings.bookings) == 1
    assert len(harness.outbox("booking_request.cancelled")) == 1

    with pytest.raises(ConflictException) as exc_info:
        await harness.service.customer_confirm(request.confirmation_token, now=NOW + timedelta(minutes=6))
    assert exc_info.value.code == "invalid_state"


@pytest.mark.asyncio
async def test_concurrent_confirmations_leave_one_booking() -> None:
    harness = make_harness()
    first = await seed_request(harness, "token-first")
    second = await seed_request(harness, "token-second")

    async def check_passes(*args, **kwargs):
        return None

    harness.bookings.find_overlapping_confirmed = check_passes  # type: ignore[method-assign]

    first_outcome = await harness.service.customer_confirm("token-first", now=NOW)
    second_outcome = await harness.service.customer_confirm("token-second", now=NOW)

    assert first_outcome.ok
    assert first.status == Status.CONFIRMED
    assert isinstance(second_outcome.error, SlotTakenException)
    assert second.status == Status.CANCELLED
    assert second.booking_id is None
    assert len(harness.bookings.bookings) == 1


@pytest.mark.asyncio
async def test_unknown_tokens_are_not_found() -> None:
    harness = make_harness()

    with pytest.raises(NotFoundException):
        await harness.service.customer_confirm("missing", now=NOW)
    with pytest.raises(NotFoundException):
        await harness.service.host_approve("missing", now=NOW)
    with pytest.raises(NotFoundException):
        await harness.service.host_reject("missing", now=NOW)


async def confirm_awaiting_host(harness: Harness, event_type: SimpleNamespace) -> FakeBookingRequest:
    request = await harness.service.submit("host", make_payload(event_type_id=event_type.id), now=NOW)
    outcome = await harness.service.customer_confirm(request.confirmation_token, now=NOW + timedelta(minutes=5))
    assert outcome.ok
    assert outcome.requires_host_approval
    return request


@pytest.mark.asyncio
async def test_customer_confirm_hands_over_to_host_when_required() -> None:
    host = make_host()
    event_type = make_event_type(host, requires_confirmation=True)
    harness = make_harness(event_type, host=host)

    request = await confirm_awaiting_host(harness, event_type)

    assert request.status == Status.PENDING_HOST_APPROVAL
    assert request.host_approval_token
    assert request.host_approval_expires_at == NOW + timedelta(minutes=5) + timedelta(days=7)
    assert harness.bookings.bookings == []
    [event] = harness.outbox("booking_request.awaiting_host_approval")
    assert event["payload"]["host_approval_token"] == request.host_approval_token

    again = await harness.service.customer_confirm(request.confirmation_token, now=NOW + timedelta(minutes=6))
    assert again.already_confirmed is True


@pytest.mark.asyncio
async def test_host_approve_books_and_is_idempotent() -> None:
    host = make_host()
    event_type = make_event_type(host, requires_confirmation=True)
    harness = make_harness(event_type, host=host)
    request = await confirm_awaiting_host(harness, event_type)

    outcome = await harness.service.host_approve(request.host_approval_token, now=NOW + timedelta(hours=1))

    assert outcome.ok
    assert request.status == Status.CONFIRMED
    assert request.host_decision_at == NOW + timedelta(hours=1)
    assert outcome.booking is not None
    assert outcome.booking.event_type_id == event_type.id

    again = await harness.service.host_approve(request.host_approval_token, now=NOW + timedelta(hours=2))
    assert again.already_confirmed is True
    assert len(harness.bookings.bookings) == 1


@pytest.mark.asyncio
async def test_host_reject_cancels_without_booking() -> None:
    host = make_host()
    event_type = make_event_type(host, requires_confirmation=True)
    harness = make_harness(event_type, host=host)
    request = await confirm_awaiting_host(harness, event_type)

    outcome = await harness.service.host_reject(request.host_approval_token, "Out of office", now=NOW + timedelta(hours=1))

    assert outcome.ok
    assert request.status == Status.CANCELLED
    assert request.cancellation_reason == "Out of office"
    assert harness.bookings.bookings == []
    [event] = harness.outbox("booking_request.rejected")
    assert event["payload"]["reason"] == "Out of office"

    with pytest.raises(ConflictException):
        await harness.service.host_approve(request.host_approval_token, now=NOW + timedelta(hours=2))
    with pytest.raises(ConflictException):
        await harness.service.host_reject(request.host_approval_token, now=NOW + timedelta(hours=2))


@pytest.mark.asyncio
async def test_host_approval_after_deadline_expires_request() -> None:
    host = make_host()
    event_type = make_event_type(host, requires_confirmation=True)
    harness = make_harness(event_type, host=host)
    request = await confirm_awaiting_host(harness, event_type)

    outcome = await harness.service.host_approve(request.host_approval_token, now=NOW + timedelta(days=8))

    assert isinstance(outcome.error, ExpiredException)
    assert request.status == Status.EXPIRED
    assert harness.bookings.bookings == []

    with pytest.raises(ExpiredException):
        await harness.service.host_approve(request.host_approval_token, now=NOW + timedelta(days=8, minutes=1))
    with pytest.raises(ExpiredException):
        await harness.service.host_reject(request.host_approval_token, "Too late", now=NOW + timedelta(days=8, minutes=1))
    assert request.status == Status.EXPIRED


@pytest.mark.asyncio
async def test_host_approve_rejects_request_awaiting_customer() -> None:
    harness = make_harness()
    request = await seed_request(harness, "token-pending")
    request.host_approval_token = "approval-token"

    with pytest.raises(ConflictException):
        await harness.service.host_approve("approval-token", now=NOW)


@pytest.mark.asyncio
async def test_expire_stale_moves_only_lapsed_holds() -> None:
    host = make_host()
    event_type = make_event_type(host, requires_confirmation=True, minimum_notice_minutes=0)
    harness = make_harness(event_type, host=host)
    lapsed = await harness.service.submit("host", make_payload(), now=NOW)
    live = await harness.service.submit(
        "host",
        make_payload(SLOT_START + timedelta(hours=2), SLOT_END + timedelta(hours=2)),
        now=NOW + timedelta(minutes=20),
    )
    awaiting = await harness.service.submit(
        "host",
        make_payload(SLOT_START + timedelta(hours=4), SLOT_END + timedelta(hours=4), event_type.id),
        now=NOW,
    )
    await harness.service.customer_confirm(awaiting.confirmation_token, now=NOW + timedelta(minutes=1))

    assert await harness.service.expire_stale(now=NOW + timedelta(minutes=35)) == 1
    assert lapsed.status == Status.EXPIRED
    assert live.status == Status.PENDING
    assert awaiting.status == Status.PENDING_HOST_APPROVAL

    assert await harness.service.expire_stale(now=NOW + timedelta(days=8)) == 2
    assert live.status == Status.EXPIRED
    assert awaiting.status == Status.EXPIRED
    assert await harness.service.expire_stale(now=NOW + timedelta(days=9)) == 0


@pytest.mark.asyncio
async def test_terminal_states_have_no_transitions() -> None:
    harness = make_harness()
    request = await seed_request(harness, "token-terminal")
    request.status = Status.CONFIRMED

    with pytest.raises(ConflictException):
        harness.service._transition(request, Status.CANCELLED)  # type: ignore[arg-type]
