from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest

from slotkeeper.core.enums import NotificationStatusEnum, OutboxStatusEnum
from slotkeeper.modules.notifications.outbox_worker import NotificationsOutboxWorker

NOW = datetime(2026, 2, 23, 12, 0, tzinfo=UTC)
HOST = SimpleNamespace(id=uuid4(), name="Grace Hopper", email="grace@example.com", timezone="Europe/Berlin")


@dataclass
class FakeOutboxEvent:
    id: UUID
    event_type: str
    payload: dict
    status: OutboxStatusEnum = OutboxStatusEnum.PENDING
    retries: int = 0
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    processed_at: datetime | None = None
    error_message: str | None = None


@dataclass
class FakeNotification:
    id: UUID
    recipient_email: str
    user_id: UUID | None
    channel: str
    title: str
    body: str
    source_event: str | None
    status: NotificationStatusEnum = NotificationStatusEnum.PENDING
    sent_at: datetime | None = None


class FakeAuditRepository:
    def __init__(self, events: list[FakeOutboxEvent]) -> None:
        self.events = events

    async def list_pending_outbox(self, limit: int) -> list[FakeOutboxEvent]:
        return [event for event in self.events if event.status == OutboxStatusEnum.PENDING][:limit]

    async def list_failed_outbox(self, limit: int, max_retries: int) -> list[FakeOutboxEvent]:
        return [
            event
            for event in self.events
            if event.status == OutboxStatusEnum.FAILED and event.retries < max_retries
        ][:limit]

    async def mark_outbox_pending(self, event: FakeOutboxEvent) -> FakeOutboxEvent:
        event.status = OutboxStatusEnum.PENDING
        event.error_message = None
        event.updated_at = datetime.now(UTC)
        return event

    async def mark_outbox_processed(
        self,
        event: FakeOutboxEvent,
        processed_at: datetime,
    ) -> FakeOutboxEvent:
        event.status = OutboxStatusEnum.PROCESSED
        event.processed_at = processed_at
        event.error_message = None
        event.updated_at = processed_at
        return event

    async def mark_outbox_failed(
        self,
        event: FakeOutboxEvent,
        error_message: str,
    ) -> FakeOutboxEvent:
        event.status = OutboxStatusEnum.FAILED
        event.retries += 1
        event.error_message = error_message
        event.updated_at = datetime.now(UTC)
        return event


class FakeNotificationsRepository:
    def __init__(self) -> None:
        self.notifications: list[FakeNotification] = []

    async def create_notification(
        self,
        recipient_email: str,
        user_id: UUID | None,
        channel: str,
        title: str,
        body: str,
        source_event: str | None = None,
    ) -> FakeNotification:
        notification = FakeNotification(
            id=uuid4(),
            recipient_email=recipient_email,
            user_id=user_id,
            channel=channel,
            title=title,
            body=body,
            source_event=source_event,
        )
        self.notifications.append(notification)
        return notification

    async def set_status(
        self,
        notification: FakeNotification,
        status: NotificationStatusEnum,
        sent_at: datetime | None,
    ) -> FakeNotification:
        notification.status = status
        notification.sent_at = sent_at
        return notification


class FakeIdentityRepository:
    async def get_user_by_id(self, user_id: UUID):
        return HOST if user_id == HOST.id else None


class FakeCalendarService:
    def __init__(self, created_ids: list[str] | None = None) -> None:
        self.created_ids = created_ids if created_ids is not None else ["evt-1"]
        self.calls: list[dict] = []

    async def create_event(self, host_id: UUID, **kwargs) -> list[str]:
        self.calls.append({"host_id": host_id, **kwargs})
        return self.created_ids


def make_worker(
    events: list[FakeOutboxEvent],
    *,
    now: datetime | None = None,
    base_backoff_seconds: int = 30,
    calendar_service: FakeCalendarService | None = None,
) -> tuple[NotificationsOutboxWorker, FakeNotificationsRepository, FakeCalendarService]:
    now_point = now or datetime.now(UTC)
    notifications_repo = FakeNotificationsRepository()
    calendar = calendar_service or FakeCalendarService()
    worker = NotificationsOutboxWorker(
        audit_repository=FakeAuditRepository(events),  # type: ignore[arg-type]
        notifications_repository=notifications_repo,  # type: ignore[arg-type]
        identity_repository=FakeIdentityRepository(),  # type: ignore[arg-type]
        calendar_service=calendar,  # type: ignore[arg-type]
        public_base_url="https://slots.example.com/",
        now_provider=lambda: now_point,
        base_backoff_seconds=base_backoff_seconds,
    )
    return worker, notifications_repo, calendar


def booking_payload(**extra) -> dict:
    return {
        "host_id": str(HOST.id),
        "customer_name": "Ada Lovelace",
        "customer_email": "ada@example.com",
        "start_at": "2026-03-02T09:00:00+00:00",
        "end_at": "2026-03-02T10:00:00+00:00",
        **extra,
    }


@pytest.mark.asyncio
async def test_worker_sends_confirmation_link_for_submitted_request() -> None:
    event = FakeOutboxEvent(
        id=uuid4(),
        event_type="booking_request.submitted",
        payload=booking_payload(confirmation_token="tok-123", expires_at="2026-02-23T12:30:00+00:00"),
    )
    worker, notifications_repo, calendar = make_worker([event], now=NOW)

    stats = await worker.run_once()

    assert stats == {"requeued": 0, "processed": 1, "failed": 0, "dispatched": 1, "synced": 0}
    [notification] = notifications_repo.notifications
    assert notification.recipient_email == "ada@example.com"
    assert notification.user_id is None
    assert notification.source_event == "booking_request.submitted"
    assert notification.status == NotificationStatusEnum.SENT
    assert notification.sent_at == NOW
    assert "https://slots.example.com/booking/confirm/tok-123" in notification.body
    assert "2026-03-02 10:00 (Europe/Berlin)" in notification.body
    assert calendar.calls == []


@pytest.mark.asyncio
async def test_worker_asks_host_to_approve() -> None:
    event = FakeOutboxEvent(
        id=uuid4(),
        event_type="booking_request.awaiting_host_approval",
        payload=booking_payload(host_approval_token="appr-9"),
    )
    worker, notifications_repo, _ = make_worker([event], now=NOW)

    stats = await worker.run_once()

    assert stats["dispatched"] == 2
    customer, host = notifications_repo.notifications
    assert customer.recipient_email == "ada@example.com"
    assert host.recipient_email == HOST.email
    assert host.user_id == HOST.id
    assert "https://slots.example.com/booking/host-approval/appr-9/approve" in host.body
    assert "https://slots.example.com/booking/host-approval/appr-9/reject" in host.body


@pytest.mark.asyncio
async def test_worker_notifies_both_sides_and_syncs_calendar_for_new_booking() -> None:
    event = FakeOutboxEvent(
        id=uuid4(),
        event_type="booking.created",
        payload=booking_payload(booking_id=str(uuid4())),
    )
    worker, notifications_repo, calendar = make_worker(
        [event],
        now=NOW,
        calendar_service=FakeCalendarService(["g-1", "m-1"]),
    )

    stats = await worker.run_once()

    assert stats == {"requeued": 0, "processed": 1, "failed": 0, "dispatched": 2, "synced": 2}
    assert {item.recipient_email for item in notifications_repo.notifications} == {"ada@example.com", HOST.email}
    [call] = calendar.calls
    assert call["host_id"] == HOST.id
    assert call["summary"] == "Meeting with Ada Lovelace"
    assert call["start_at"] == datetime(2026, 3, 2, 9, 0, tzinfo=UTC)
    assert call["end_at"] == datetime(2026, 3, 2, 10, 0, tzinfo=UTC)


@pytest.mark.asyncio
async def test_worker_includes_reason_for_slot_taken_cancellation() -> None:
    event = FakeOutboxEvent(
        id=uuid4(),
        event_type="booking_request.cancelled",
        payload=booking_payload(reason="Time slot is no longer available"),
    )
    worker, notifications_repo, _ = make_worker([event], now=NOW)

    await worker.run_once()

    [notification] = notifications_repo.notifications
    assert notification.title == "Time slot no longer available"
    assert notification.body.endswith("Reason: Time slot is no longer available")


@pytest.mark.asyncio
async def test_worker_processes_unknown_event_without_dispatch() -> None:
    event = FakeOutboxEvent(
        id=uuid4(),
        event_type="unknown.event",
        payload={},
    )
    worker, notifications_repo, _ = make_worker([event], now=NOW)

    stats = await worker.run_once()

    assert stats == {"requeued": 0, "processed": 1, "failed": 0, "dispatched": 0, "synced": 0}
    assert event.status == OutboxStatusEnum.PROCESSED
    assert notifications_repo.notifications == []


@pytest.mark.asyncio
async def test_worker_requeues_failed_event_after_backoff() -> None:
    event = FakeOutboxEvent(
        id=uuid4(),
        event_type="booking.cancelled",
        payload=booking_payload(reason=None),
        status=OutboxStatusEnum.FAILED,
        retries=1,
        occurred_at=NOW - timedelta(minutes=10),
        updated_at=NOW - timedelta(minutes=2),
    )
    worker, notifications_repo, _ = make_worker([event], now=NOW, base_backoff_seconds=30)

    stats = await worker.run_once()

    assert stats["requeued"] == 1
    assert stats["processed"] == 1
    assert event.status == OutboxStatusEnum.PROCESSED
    assert len(notifications_repo.notifications) == 2


@pytest.mark.asyncio
async def test_worker_keeps_failed_event_until_backoff_elapsed() -> None:
    event = FakeOutboxEvent(
        id=uuid4(),
        event_type="booking.cancelled",
        payload=booking_payload(),
        status=OutboxStatusEnum.FAILED,
        retries=3,
        occurred_at=NOW - timedelta(minutes=10),
        updated_at=NOW - timedelta(minutes=1),
    )
    worker, notifications_repo, _ = make_worker([event], now=NOW, base_backoff_seconds=30)

    stats = await worker.run_once()

    assert stats["requeued"] == 0
    assert event.status == OutboxStatusEnum.FAILED
    assert notifications_repo.notifications == []


@pytest.mark.asyncio
async def test_worker_marks_event_failed_when_payload_invalid() -> None:
    missing_token = FakeOutboxEvent(
        id=uuid4(),
        event_type="booking_request.submitted",
        payload=booking_payload(),
    )
    unknown_host = FakeOutboxEvent(
        id=uuid4(),
        event_type="booking.created",
        payload=booking_payload(host_id=str(uuid4())),
    )
    worker, notifications_repo, calendar = make_worker([missing_token, unknown_host], now=NOW)

    stats = await worker.run_once()

    assert stats["processed"] == 0
    assert stats["failed"] == 2
    assert missing_token.status == OutboxStatusEnum.FAILED
    assert missing_token.retries == 1
    assert missing_token.error_message == "Missing required key: confirmation_token"
    assert unknown_host.error_message.startswith("Host not found")
    assert notifications_repo.notifications == []
    assert calendar.calls == []
