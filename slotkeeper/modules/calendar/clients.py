"""HTTP clients for external calendar providers."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone

import httpx

from slotkeeper.modules.availability.slots import BusyInterval
from slotkeeper.shared.utils import ensure_utc

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"
MICROSOFT_GRAPH_API = "https://graph.microsoft.com/v1.0"


class CalendarProviderError(Exception):
    """Provider call failed or returned an unusable response."""


def parse_event_time(value: dict | None, *, default_zone: timezone = timezone.utc) -> datetime | None:
    """Parse provider `{dateTime|date, timeZone}` object into UTC instant."""
    if not value:
        return None
    if value.get("dateTime"):
        parsed = datetime.fromisoformat(value["dateTime"].replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=default_zone)
        return ensure_utc(parsed)
    if value.get("date"):
        return datetime.combine(date.fromisoformat(value["date"]), time.min, tzinfo=timezone.utc)
    return None


class CalendarClient:
    """Base provider client over httpx.AsyncClient."""

    provider = "unknown"
    base_url = ""

    def __init__(
        self,
        access_token: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.access_token = access_token
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {self.access_token}"},
            timeout=self.timeout,
            transport=self.transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        async with self._client() as client:
            try:
                response = await client.request(method, path, **kwargs)
                response.raise_for_status()
            except httpx.HTTPError as exc:
                raise CalendarProviderError(f"{self.provider} request failed: {exc}") from exc
        return response.json()

    async def get_busy_times(self, start_at: datetime, end_at: datetime) -> list[BusyInterval]:
        raise NotImplementedError

    async def create_event(self, *, summary: str, description: str, start_at: datetime, end_at: datetime) -> str | None:
        raise NotImplementedError

    def _to_busy(self, events: list[dict], *, cancelled) -> list[BusyInterval]:
        busy: list[BusyInterval] = []
        for event in events:
            if cancelled(event):
                continue
            start_at = parse_event_time(event.get("start"))
            end_at = parse_event_time(event.get("end"))
            if start_at is None or end_at is None or start_at >= end_at:
                logger.debug("Ignoring %s event without usable times: %s", self.provider, event.get("id"))
                continue
            busy.append(BusyInterval(start=start_at, end=end_at, source="calendar"))
        return busy


class GoogleCalendarClient(CalendarClient):
    """Google Calendar v3, primary calendar."""

    provider = "google"
    base_url = GOOGLE_CALENDAR_API

    async def get_busy_times(self, start_at: datetime, end_at: datetime) -> list[BusyInterval]:
        data = await self._request(
            "GET",
            "/calendars/primary/events",
            params={
                "timeMin": ensure_utc(start_at).isoformat(),
                "timeMax": ensure_utc(end_at).isoformat(),
                "singleEvents": "true",
                "orderBy": "startTime",
            },
        )
        return self._to_busy(data.get("items", []), cancelled=lambda event: event.get("status") == "cancelled")

    async def create_event(self, *, summary: str, description: str, start_at: datetime, end_at: datetime) -> str | None:
        data = await self._request(
            "POST",
            "/calendars/primary/events",
            json={
                "summary": summary,
                "description": description,
                "start": {"dateTime": ensure_utc(start_at).isoformat(), "timeZone": "UTC"},
                "end": {"dateTime": ensure_utc(end_at).isoformat(), "timeZone": "UTC"},
            },
        )
        return data.get("id")


class MicrosoftCalendarClient(CalendarClient):
    """Microsoft Graph calendar view; recurring events come back expanded."""

    provider = "microsoft"
    base_url = MICROSOFT_GRAPH_API

    async def get_busy_times(self, start_at: datetime, end_at: datetime) -> list[BusyInterval]:
        data = await self._request(
            "GET",
            "/me/calendarView",
            params={
                "startDateTime": ensure_utc(start_at).isoformat(),
                "endDateTime": ensure_utc(end_at).isoformat(),
                "$select": "start,end,subject,isCancelled,showAs,isAllDay",
                "$orderby": "start/dateTime",
                "$top": "500",
            },
        )
        return self._to_busy(data.get("value", []), cancelled=lambda event: bool(event.get("isCancelled")))

    async def create_event(self, *, summary: str, description: str, start_at: datetime, end_at: datetime) -> str | None:
        data = await self._request(
            "POST",
            "/me/events",
            json={
                "subject": summary,
                "body": {"contentType": "text", "content": description},
                "start": {"dateTime": ensure_utc(start_at).replace(tzinfo=None).isoformat(), "timeZone": "UTC"},
                "end": {"dateTime": ensure_utc(end_at).replace(tzinfo=None).isoformat(), "timeZone": "UTC"},
            },
        )
        return data.get("id")
