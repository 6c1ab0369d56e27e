from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Protocol

from aide.assistant.clock import parse_rfc3339
from aide.errors import GoogleAPIError, NotConnectedError
from aide.storage.reminders import Reminder, ReminderStore

LOGGER = logging.getLogger(__name__)


class ReminderSender(Protocol):
    async def send_reminder(self, title: str, message: str) -> bool: ...


class EventLookup(Protocol):
    async def get_event(self, event_id: str) -> dict[str, Any]: ...


@dataclass
class TickResult:
    tick_at: datetime
    triggered: list[dict[str, Any]] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.triggered)

    def to_dict(self) -> dict[str, Any]:
        return {"tick_at": self.tick_at.isoformat(), "count": self.count, "triggered": self.triggered}


def reminder_message(reminder: Reminder) -> str:
    suffix = f" - {reminder.description}" if reminder.description else ""
    return f"[{reminder.type}] {reminder.title}{suffix}"


class ReminderEngine:
    def __init__(
        self,
        store: ReminderStore,
        sender: ReminderSender,
        calendar: EventLookup | None = None,
    ) -> None:
        self._store = store
        self._sender = sender
        self._calendar = calendar

    async def tick(self, now: datetime) -> TickResult:
        result = TickResult(tick_at=now)
        due = list(await self._store.triggered(now))
        due.extend(await self._due_event_reminders(now))

        for reminder in due:
            message = reminder_message(reminder)
            sent = await self._sender.send_reminder(reminder.title, message)
            status = "sent" if sent else "failed"
            await self._store.log_trigger(reminder.id, message, now, status=status)
            result.triggered.append(
                {
                    "id": reminder.id,
                    "title": reminder.title,
                    "type": reminder.type,
                    "message": message,
                    "status": status,
                }
            )

        if result.count:
            LOGGER.info("Reminder tick at %s fired %s reminder(s)", now.isoformat(), result.count)
        return result

    async def _due_event_reminders(self, now: datetime) -> list[Reminder]:
        if self._calendar is None:
            return []

        due: list[Reminder] = []
        for reminder in await self._store.event_reminders():
            try:
                event = await self._calendar.get_event(reminder.google_event_id or "")
            except NotConnectedError:
                LOGGER.info("Calendar not connected, skipping event reminders")
                return due
            except GoogleAPIError as exc:
                LOGGER.warning("Could not load event for reminder %s: %s", reminder.id, exc)
                continue

            start_raw = (event.get("start") or {}).get("dateTime")
            if not start_raw:
                continue
            start = parse_rfc3339(start_raw)
            notify_at = start - timedelta(minutes=reminder.minutes_before or 0)
            already_sent = reminder.last_triggered_at is not None and reminder.last_triggered_at >= notify_at
            if notify_at <= now < start and not already_sent:
                due.append(reminder)
        return due
