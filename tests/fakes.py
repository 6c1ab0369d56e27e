from __future__ import annotations

import asyncio
import copy
from datetime import date, datetime, timedelta
from typing import Any, Callable, Sequence
from zoneinfo import ZoneInfo

from aide.assistant.clock import parse_rfc3339
from aide.errors import NotConnectedError
from aide.types import ChatMessage, ModelReply, ToolCall, ToolCallResult

SEOUL = ZoneInfo("Asia/Seoul")


def fixed_clock(value: datetime) -> Callable[[], datetime]:
    return lambda: value


def timed_event(event_id: str, summary: str, start: datetime, minutes: int = 60, **extra: Any) -> dict[str, Any]:
    end = start + timedelta(minutes=minutes)
    return {
        "id": event_id,
        "summary": summary,
        "start": {"dateTime": start.isoformat()},
        "end": {"dateTime": end.isoformat()},
        **extra,
    }


class FakeCalendar:
    def __init__(self, events: list[dict[str, Any]] | None = None, *, connected: bool = True) -> None:
        self.events = list(events or [])
        self.connected = connected
        self.list_calls: list[tuple[datetime, datetime]] = []
        self.created: list[dict[str, Any]] = []
        self.updated: list[tuple[str, dict[str, Any]]] = []
        self.deleted: list[str] = []

    def _check(self) -> None:
        if not self.connected:
            raise NotConnectedError("Google Calendar not connected. Complete Google authorization first.")

    async def list_events(self, time_min: datetime, time_max: datetime, limit: int = 50) -> list[dict[str, Any]]:
        self._check()
        self.list_calls.append((time_min, time_max))
        matched = []
        for event in self.events:
            start = event.get("start") or {}
            if start.get("dateTime"):
                if time_min <= parse_rfc3339(start["dateTime"]) < time_max:
                    matched.append(event)
            elif start.get("date") and time_min.date() <= date.fromisoformat(start["date"]) < time_max.date():
                matched.append(event)
        return matched[:limit]

    async def get_event(self, event_id: str) -> dict[str, Any]:
        self._check()
        for event in self.events:
            if event["id"] == event_id:
                return event
        raise KeyError(event_id)

    async def create_event(self, fields: dict[str, Any]) -> dict[str, Any]:
        self._check()
        self.created.append(fields)
        return {"id": fields.get("id") or f"evt-{len(self.created)}", **fields}

    async def update_event(self, event_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        self._check()
        self.updated.append((event_id, fields))
        return {"id": event_id, **fields}

    async def delete_event(self, event_id: str) -> None:
        self._check()
        self.deleted.append(event_id)


class FakeTasks:
    def __init__(self, tasks: list[dict[str, Any]] | None = None, *, connected: bool = True) -> None:
        self.tasks = list(tasks or [])
        self.connected = connected
        self.created: list[dict[str, Any]] = []
        self.completed: list[str] = []
        self.deleted: list[str] = []

    def _check(self) -> None:
        if not self.connected:
            raise NotConnectedError("Google Tasks not connected. Complete Google authorization first.")

    async def list_tasks(self, list_id: str | None = None, include_completed: bool = False) -> list[dict[str, Any]]:
        self._check()
        if include_completed:
            return list(self.tasks)
        return [task for task in self.tasks if task.get("status") != "completed"]

    async def create_task(self, fields: dict[str, Any], list_id: str | None = None) -> dict[str, Any]:
        self._check()
        self.created.append(fields)
        return {"id": f"task-{len(self.created)}", **fields}

    async def complete_task(self, task_id: str, list_id: str | None = None) -> dict[str, Any]:
        self._check()
        self.completed.append(task_id)
        return {"id": task_id, "status": "completed"}

    async def delete_task(self, task_id: str, list_id: str | None = None) -> None:
        self._check()
        self.deleted.append(task_id)


class FakeNotifier:
    def __init__(self, *, succeed: bool = True) -> None:
        self.succeed = succeed
        self.sent: list[tuple[str, str]] = []
        self.owner_messages: list[str] = []
        self.reminders: list[tuple[str, str]] = []

    async def deliver(self, chat_id: str, text: str) -> bool:
        self.sent.append((chat_id, text))
        return self.succeed

    async def deliver_to_owner(self, text: str, parse_mode: str | None = None) -> bool:
        self.owner_messages.append(text)
        return self.succeed

    async def send_reminder(self, title: str, message: str) -> bool:
        self.reminders.append((title, message))
        return self.succeed


class ScriptedModel:
    """Replays canned replies and records the messages of every call."""

    def __init__(self, replies: Sequence[ModelReply | Exception] | Callable[[int], ModelReply]) -> None:
        self._replies = replies
        self.calls: list[list[ChatMessage]] = []
        self.tools_seen: list[Any] = []

    async def complete(self, messages: Sequence[ChatMessage], tools: Sequence[dict[str, Any]] | None = None) -> ModelReply:
        self.calls.append(copy.copy(list(messages)))
        self.tools_seen.append(tools)
        index = len(self.calls) - 1
        if callable(self._replies):
            return self._replies(index)
        reply = self._replies[index]
        if isinstance(reply, Exception):
            raise reply
        return reply


def tool_reply(*calls: tuple[str, str, str], content: str | None = None) -> ModelReply:
    return ModelReply(content=content, tool_calls=tuple(ToolCall(id=i, name=n, arguments=a) for i, n, a in calls))


class DelayedTools:
    """Stands in for the tool registry, finishing calls after per-call delays."""

    def __init__(self, delays: dict[str, float]) -> None:
        self._delays = delays
        self.finished: list[str] = []

    async def execute(self, call: ToolCall, context: Any = None) -> ToolCallResult:
        await asyncio.sleep(self._delays.get(call.id, 0))
        self.finished.append(call.id)
        return ToolCallResult(correlation_id=call.id, payload={"status": "ok", "echo": call.id})
