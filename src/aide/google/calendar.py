from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from aide.config import GoogleConfig
from aide.google.auth import GoogleAuth
from aide.google.base import GoogleRESTClient, path_segment

DEFAULT_EVENT_LIMIT = 50


class CalendarClient(GoogleRESTClient):
    """Google Calendar v3 events on a single calendar.

    Events are returned as the raw API dictionaries; ``start``/``end`` hold
    either ``dateTime`` (timed events) or ``date`` (all-day events).
    """

    api_name = "Google Calendar"

    def __init__(
        self,
        config: GoogleConfig,
        auth: GoogleAuth,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(
            auth,
            config.calendar_base_url,
            timeout_seconds=config.timeout_seconds,
            http_client=http_client,
        )
        self._events_path = f"/calendars/{path_segment(config.calendar_id)}/events"

    async def list_events(
        self,
        time_min: datetime,
        time_max: datetime,
        limit: int = DEFAULT_EVENT_LIMIT,
    ) -> list[dict[str, Any]]:
        data = await self._request(
            "GET",
            self._events_path,
            params={
                "timeMin": _rfc3339(time_min),
                "timeMax": _rfc3339(time_max),
                "maxResults": str(limit),
                "singleEvents": "true",
                "orderBy": "startTime",
            },
        )
        return list((data or {}).get("items") or [])

    async def get_event(self, event_id: str) -> dict[str, Any]:
        return await self._request("GET", f"{self._events_path}/{path_segment(event_id)}")

    async def upcoming_events(self, minutes: int, now: datetime | None = None) -> list[dict[str, Any]]:
        start = now or datetime.now(timezone.utc)
        return await self.list_events(start, start + timedelta(minutes=minutes))

    async def create_event(self, fields: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", self._events_path, body=fields)

    async def update_event(self, event_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        return await self._request("PATCH", f"{self._events_path}/{path_segment(event_id)}", body=fields)

    async def delete_event(self, event_id: str) -> None:
        await self._request("DELETE", f"{self._events_path}/{path_segment(event_id)}")


def _rfc3339(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()
