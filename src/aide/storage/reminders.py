from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from aide.storage.database import Database

REMINDER_TYPES = ("event_before", "daily_briefing", "recurring", "deadline")
RETRIGGER_AFTER = timedelta(minutes=30)

_UPDATABLE_FIELDS = (
    "title",
    "description",
    "active",
    "minutes_before",
    "cron_expression",
    "deadline_at",
)


@dataclass(frozen=True)
class Reminder:
    id: str
    title: str
    type: str
    description: str | None = None
    google_event_id: str | None = None
    minutes_before: int | None = None
    cron_expression: str | None = None
    deadline_at: datetime | None = None
    active: bool = True
    last_triggered_at: datetime | None = None
    notify_via: str = "telegram"
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.type,
            "description": self.description,
            "google_event_id": self.google_event_id,
            "minutes_before": self.minutes_before,
            "cron_expression": self.cron_expression,
            "deadline_at": _iso(self.deadline_at),
            "active": self.active,
            "last_triggered_at": _iso(self.last_triggered_at),
            "notify_via": self.notify_via,
        }


@dataclass(frozen=True)
class ReminderLog:
    id: str
    reminder_id: str
    triggered_at: datetime
    message: str
    status: str


class ReminderStore:
    def __init__(self, db: Database) -> None:
        self._db = db

    async def create(
        self,
        *,
        title: str,
        type: str,
        description: str | None = None,
        google_event_id: str | None = None,
        minutes_before: int | None = None,
        cron_expression: str | None = None,
        deadline_at: datetime | None = None,
        now: datetime | None = None,
    ) -> Reminder:
        if not title:
            raise ValueError("title is required")
        if type not in REMINDER_TYPES:
            raise ValueError(f"type must be one of: {', '.join(REMINDER_TYPES)}")

        reminder_id = str(uuid.uuid4())
        created = _epoch(now or datetime.now(timezone.utc))
        await self._db.execute(
            """
            INSERT INTO reminders (
                id, title, description, type, google_event_id, minutes_before,
                cron_expression, deadline_at, active, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, 1, ?, ?)
            """,
            (
                reminder_id,
                title,
                description,
                type,
                google_event_id,
                minutes_before,
                cron_expression,
                _epoch(deadline_at),
                created,
                created,
            ),
        )
        reminder = await self.get(reminder_id)
        if reminder is None:
            raise RuntimeError(f"reminder {reminder_id} vanished right after insert")
        return reminder

    async def get(self, reminder_id: str) -> Reminder | None:
        row = await self._db.fetchone("SELECT * FROM reminders WHERE id = ?", (reminder_id,))
        return _row_to_reminder(row) if row is not None else None

    async def list_active(self) -> list[Reminder]:
        rows = await self._db.fetchall(
            "SELECT * FROM reminders WHERE active = 1 ORDER BY created_at ASC"
        )
        return [_row_to_reminder(row) for row in rows]

    async def update(self, reminder_id: str, **changes: Any) -> Reminder | None:
        unknown = set(changes) - set(_UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"cannot update field(s): {', '.join(sorted(unknown))}")

        assignments: list[str] = []
        params: list[Any] = []
        for name in _UPDATABLE_FIELDS:
            if name not in changes:
                continue
            value = changes[name]
            if name == "deadline_at":
                value = _epoch(value)
            elif name == "active":
                value = 1 if value else 0
            assignments.append(f"{name} = ?")
            params.append(value)

        if assignments:
            assignments.append("updated_at = ?")
            params.append(_epoch(datetime.now(timezone.utc)))
            await self._db.execute(
                f"UPDATE reminders SET {', '.join(assignments)} WHERE id = ?",
                (*params, reminder_id),
            )
        return await self.get(reminder_id)

    async def delete(self, reminder_id: str) -> None:
        await self._db.execute("DELETE FROM reminders WHERE id = ?", (reminder_id,))

    async def triggered(self, now: datetime) -> list[Reminder]:
        """Active reminders that are due and were not fired in the last 30 minutes.

        ``event_before`` reminders are not selected here; their due time
        depends on the linked calendar event.
        """
        current = _epoch(now)
        rows = await self._db.fetchall(
            """
            SELECT * FROM reminders
            WHERE active = 1
              AND (
                (type = 'deadline' AND deadline_at IS NOT NULL AND deadline_at < ?)
                OR type IN ('daily_briefing', 'recurring')
              )
              AND (last_triggered_at IS NULL OR last_triggered_at < ?)
            ORDER BY created_at ASC
            """,
            (current, current - RETRIGGER_AFTER.total_seconds()),
        )
        return [_row_to_reminder(row) for row in rows]

    async def event_reminders(self) -> list[Reminder]:
        """Active ``event_before`` reminders; the engine decides which are due."""
        rows = await self._db.fetchall(
            """
            SELECT * FROM reminders
            WHERE active = 1
              AND type = 'event_before'
              AND google_event_id IS NOT NULL
            ORDER BY created_at ASC
            """
        )
        return [_row_to_reminder(row) for row in rows]

    async def log_trigger(
        self,
        reminder_id: str,
        message: str,
        now: datetime,
        status: str = "sent",
    ) -> None:
        triggered_at = _epoch(now)
        await self._db.execute(
            """
            INSERT INTO reminder_logs (id, reminder_id, triggered_at, message, status)
            VALUES (?, ?, ?, ?, ?)
            """,
            (str(uuid.uuid4()), reminder_id, triggered_at, message, status),
        )
        await self._db.execute(
            "UPDATE reminders SET last_triggered_at = ? WHERE id = ?",
            (triggered_at, reminder_id),
        )

    async def logs(self, reminder_id: str, limit: int = 10) -> list[ReminderLog]:
        rows = await self._db.fetchall(
            """
            SELECT id, reminder_id, triggered_at, message, status FROM reminder_logs
            WHERE reminder_id = ?
            ORDER BY triggered_at ASC
            LIMIT ?
            """,
            (reminder_id, limit),
        )
        return [
            ReminderLog(
                id=row["id"],
                reminder_id=row["reminder_id"],
                triggered_at=_from_epoch(row["triggered_at"]),
                message=row["message"],
                status=row["status"],
            )
            for row in rows
        ]


def _row_to_reminder(row: Any) -> Reminder:
    return Reminder(
        id=row["id"],
        title=row["title"],
        type=row["type"],
        description=row["description"],
        google_event_id=row["google_event_id"],
        minutes_before=row["minutes_before"],
        cron_expression=row["cron_expression"],
        deadline_at=_from_epoch(row["deadline_at"]),
        active=bool(row["active"]),
        last_triggered_at=_from_epoch(row["last_triggered_at"]),
        notify_via=row["notify_via"],
        created_at=_from_epoch(row["created_at"]),
        updated_at=_from_epoch(row["updated_at"]),
    )


def _epoch(value: datetime | None) -> float | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def _from_epoch(value: float | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(float(value), tz=timezone.utc)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
