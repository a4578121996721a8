"""Outbox consumer that materializes scheduling events into notifications and calendar sync."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from slotkeeper.core.enums import NotificationStatusEnum
from slotkeeper.modules.audit.models import OutboxEvent
from slotkeeper.modules.audit.repository import AuditRepository
from slotkeeper.modules.calendar.service import CalendarService
from slotkeeper.modules.identity.models import User
from slotkeeper.modules.identity.repository import IdentityRepository
from slotkeeper.modules.notifications.repository import NotificationsRepository
from slotkeeper.shared.timewindows import from_utc
from slotkeeper.shared.utils import utc_now

logger = logging.getLogger(__name__)

HANDLED_EVENT_TYPES = frozenset(
    {
        "booking_request.submitted",
        "booking_request.awaiting_host_approval",
        "booking_request.rejected",
        "booking_request.cancelled",
        "booking_request.expired",
        "booking.created",
        "booking.cancelled",
    },
)


@dataclass(slots=True)
class NotificationMessage:
    recipient_email: str
    title: str
    body: str
    user_id: UUID | None = None
    channel: str = "email"


class NotificationsOutboxWorker:
    """Process outbox events, create notifications and push new bookings to calendars."""

    def __init__(
        self,
        audit_repository: AuditRepository,
        notifications_repository: NotificationsRepository,
        identity_repository: IdentityRepository,
        calendar_service: CalendarService,
        *,
        public_base_url: str,
        batch_size: int = 100,
        max_retries: int = 5,
        base_backoff_seconds: int = 30,
        max_backoff_seconds: int = 300,
        now_provider=utc_now,
    ) -> None:
        self.audit_repository = audit_repository
        self.notifications_repository = notifications_repository
        self.identity_repository = identity_repository
        self.calendar_service = calendar_service
        self.public_base_url = public_base_url.rstrip("/")
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.base_backoff_seconds = base_backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self.now_provider = now_provider

    async def run_once(self) -> dict[str, int]:
        """Run one processing cycle."""
        stats = {"requeued": 0, "processed": 0, "failed": 0, "dispatched": 0, "synced": 0}
        stats["requeued"] = await self._requeue_retryable_failed_events()

        events = await self.audit_repository.list_pending_outbox(limit=self.batch_size)
        for event in events:
            try:
                if event.event_type not in HANDLED_EVENT_TYPES:
                    logger.debug("Skipping outbox event %s of type %s", event.id, event.event_type)
                    await self.audit_repository.mark_outbox_processed(event, self.now_provider())
                    stats["processed"] += 1
                    continue

                host = await self._get_host(event.payload or {})
                messages = self._build_messages(event, host)
                for message in messages:
                    notification = await self.notifications_repository.create_notification(
                        recipient_email=message.recipient_email,
                        user_id=message.user_id,
                        channel=message.channel,
                        title=message.title,
                        body=message.body,
                        source_event=event.event_type,
                    )
                    await self.notifications_repository.set_status(
                        notification,
                        NotificationStatusEnum.SENT,
                        self.now_provider(),
                    )
                    stats["dispatched"] += 1

                if event.event_type == "booking.created":
                    stats["synced"] += await self._sync_calendar(event, host)

                await self.audit_repository.mark_outbox_processed(event, self.now_provider())
                stats["processed"] += 1
            except Exception as exc:
                logger.warning("Outbox event %s (%s) failed: %s", event.id, event.event_type, exc)
                await self.audit_repository.mark_outbox_failed(event, str(exc))
                stats["failed"] += 1
        return stats

    async def _requeue_retryable_failed_events(self) -> int:
        now = self.now_provider()
        failed_events = await self.audit_repository.list_failed_outbox(
            limit=self.batch_size,
            max_retries=self.max_retries,
        )
        requeued = 0
        for event in failed_events:
            if self._is_backoff_elapsed(event, now):
                await self.audit_repository.mark_outbox_pending(event)
                requeued += 1
        return requeued

    def _is_backoff_elapsed(self, event: OutboxEvent, now: datetime) -> bool:
        retries = max(event.retries, 1)
        backoff_seconds = min(
            self.max_backoff_seconds,
            self.base_backoff_seconds * (2 ** (retries - 1)),
        )
        last_attempt_at = event.updated_at or event.occurred_at
        return now >= last_attempt_at + timedelta(seconds=backoff_seconds)

    async def _get_host(self, payload: dict) -> User:
        host_id = self._required_uuid(payload, "host_id")
        host = await self.identity_repository.get_user_by_id(host_id)
        if host is None:
            raise ValueError(f"Host not found: {host_id}")
        return host

    async def _sync_calendar(self, event: OutboxEvent, host: User) -> int:
        payload = event.payload
        created = await self.calendar_service.create_event(
            host.id,
            summary=f"Meeting with {payload['customer_name']}",
            description=f"Booked by {payload['customer_name']} <{payload['customer_email']}>",
            start_at=datetime.fromisoformat(payload["start_at"]),
            end_at=datetime.fromisoformat(payload["end_at"]),
        )
        return len(created)

    def _link(self, path: str) -> str:
        return f"{self.public_base_url}{path}"

    def _when(self, payload: dict, host: User) -> str:
        start_at = from_utc(datetime.fromisoformat(payload["start_at"]), host.timezone)
        return f"{start_at:%Y-%m-%d %H:%M} ({host.timezone})"

    def _build_messages(self, event: OutboxEvent, host: User) -> list[NotificationMessage]:
        payload = event.payload or {}
        event_type = event.event_type
        customer = payload.get("customer_email")
        if not customer:
            raise ValueError("Missing required key: customer_email")
        when = self._when(payload, host)

        if event_type == "booking_request.submitted":
            token = self._required(payload, "confirmation_token")
            return [
                NotificationMessage(
                    recipient_email=customer,
                    title=f"Confirm your booking with {host.name}",
                    body=(
                        f"Please confirm your booking for {when}: "
                        f"{self._link(f'/booking/confirm/{token}')}. "
                        f"The hold expires at {payload.get('expires_at', 'soon')}."
                    ),
                ),
            ]

        if event_type == "booking_request.awaiting_host_approval":
            token = self._required(payload, "host_approval_token")
            return [
                NotificationMessage(
                    recipient_email=customer,
                    title="Booking awaiting host approval",
                    body=f"{host.name} has been asked to approve your booking for {when}.",
                ),
                NotificationMessage(
                    recipient_email=host.email,
                    user_id=host.id,
                    title=f"Approve booking request from {payload.get('customer_name')}",
                    body=(
                        f"Approve: {self._link(f'/booking/host-approval/{token}/approve')} "
                        f"Reject: {self._link(f'/booking/host-approval/{token}/reject')}"
                    ),
                ),
            ]

        if event_type in ("booking_request.rejected", "booking_request.cancelled", "booking_request.expired"):
            titles = {
                "booking_request.rejected": "Booking request declined",
                "booking_request.cancelled": "Time slot no longer available",
                "booking_request.expired": "Booking request expired",
            }
            reason = payload.get("reason")
            body = f"Your booking request for {when} was not confirmed."
            if reason:
                body = f"{body} Reason: {reason}"
            return [NotificationMessage(recipient_email=customer, title=titles[event_type], body=body)]

        if event_type == "booking.created":
            return [
                NotificationMessage(
                    recipient_email=customer,
                    title=f"Booking with {host.name} confirmed",
                    body=f"Your booking for {when} is confirmed.",
                ),
                NotificationMessage(
                    recipient_email=host.email,
                    user_id=host.id,
                    title=f"New booking: {payload.get('customer_name')}",
                    body=f"{payload.get('customer_name')} booked {when}.",
                ),
            ]

        if event_type == "booking.cancelled":
            return [
                NotificationMessage(
                    recipient_email=customer,
                    title="Booking cancelled",
                    body=f"Your booking for {when} has been cancelled.",
                ),
                NotificationMessage(
                    recipient_email=host.email,
                    user_id=host.id,
                    title=f"Booking cancelled: {payload.get('customer_name')}",
                    body=f"Booking for {when} has been cancelled.",
                ),
            ]

        return []

    @staticmethod
    def _required(payload: dict, key: str) -> str:
        value = payload.get(key)
        if not value:
            raise ValueError(f"Missing required key: {key}")
        return str(value)

    @staticmethod
    def _required_uuid(payload: dict, key: str) -> UUID:
        value = payload.get(key)
        if value is None:
            raise ValueError(f"Missing required key: {key}")
        return UUID(str(value))
