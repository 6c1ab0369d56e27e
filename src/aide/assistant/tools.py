"""Tool executors the language model can invoke.

Every tool takes the model's string-valued JSON arguments, parses them into a
typed argument object, calls the calendar or task provider and returns a
JSON-serializable dict with ``status`` set to ``"ok"`` or ``"error"``.
``ToolRegistry.execute`` never raises: argument problems, provider failures
and timeouts all come back as error results for the model to read.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Protocol

from aide.assistant.clock import (
    Clock,
    at,
    day_range,
    hhmm,
    parse_date,
    parse_rfc3339,
    parse_time,
    zone_clock,
)
from aide.errors import GoogleAPIError, NotConnectedError, ToolArgumentError
from aide.types import ToolCall, ToolCallResult

LOGGER = logging.getLogger(__name__)

DEFAULT_EVENT_DURATION = timedelta(minutes=60)
NOT_CONNECTED_CODE = "not_connected"


class ToolName(str, Enum):
    LIST_EVENTS = "list_events"
    CREATE_EVENT = "create_event"
    UPDATE_EVENT = "update_event"
    DELETE_EVENT = "delete_event"
    LIST_TASKS = "list_tasks"
    CREATE_TASK = "create_task"
    COMPLETE_TASK = "complete_task"
    DELETE_TASK = "delete_task"


class CalendarProvider(Protocol):
    async def list_events(self, time_min: datetime, time_max: datetime, limit: int = ...) -> list[dict[str, Any]]: ...

    async def create_event(self, fields: dict[str, Any]) -> dict[str, Any]: ...

    async def update_event(self, event_id: str, fields: dict[str, Any]) -> dict[str, Any]: ...

    async def delete_event(self, event_id: str) -> None: ...


class TaskProvider(Protocol):
    async def list_tasks(self, list_id: str | None = None, include_completed: bool = False) -> list[dict[str, Any]]: ...

    async def create_task(self, fields: dict[str, Any], list_id: str | None = None) -> dict[str, Any]: ...

    async def complete_task(self, task_id: str, list_id: str | None = None) -> dict[str, Any]: ...

    async def delete_task(self, task_id: str, list_id: str | None = None) -> None: ...


@dataclass(frozen=True)
class ToolContext:
    conversation_id: str
    round_number: int

    def idempotency_key(self, call_id: str) -> str:
        # sha1 hex digits are valid base32hex characters for Google event ids.
        raw = f"{self.conversation_id}:{self.round_number}:{call_id}"
        return hashlib.sha1(raw.encode("utf-8")).hexdigest()


# --- typed arguments ---


@dataclass(frozen=True)
class ListEventsArgs:
    date: date | None = None
    days: int = 1


@dataclass(frozen=True)
class CreateEventArgs:
    summary: str
    start_time: time
    date: date | None = None
    end_time: time | None = None
    location: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class UpdateEventArgs:
    search_summary: str
    date: date | None = None
    new_summary: str | None = None
    new_start_time: time | None = None
    new_end_time: time | None = None
    new_description: str | None = None
    new_location: str | None = None


@dataclass(frozen=True)
class DeleteEventArgs:
    summary: str
    date: date | None = None


@dataclass(frozen=True)
class ListTasksArgs:
    show_completed: bool = False


@dataclass(frozen=True)
class CreateTaskArgs:
    title: str
    notes: str | None = None
    due: date | None = None


@dataclass(frozen=True)
class TaskTitleArgs:
    title: str


def _decode(raw: str | Mapping[str, Any]) -> dict[str, str]:
    if isinstance(raw, Mapping):
        data: Any = dict(raw)
    else:
        try:
            data = json.loads(raw or "{}")
        except json.JSONDecodeError as exc:
            raise ToolArgumentError(f"arguments are not valid JSON: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise ToolArgumentError("arguments must be a JSON object")

    values: dict[str, str] = {}
    for key, value in data.items():
        if value is None:
            continue
        text = value if isinstance(value, str) else json.dumps(value)
        text = text.strip()
        if text:
            values[str(key)] = text
    return values


def _require(args: dict[str, str], *names: str) -> None:
    if any(name not in args for name in names):
        raise ToolArgumentError(f"{' and '.join(names)} {'is' if len(names) == 1 else 'are'} required")


def _optional_date(args: dict[str, str], name: str) -> date | None:
    return parse_date(args[name], name) if name in args else None


def _optional_time(args: dict[str, str], name: str) -> time | None:
    return parse_time(args[name], name) if name in args else None


def _parse_list_events(args: dict[str, str]) -> ListEventsArgs:
    days = 1
    if "days" in args:
        try:
            days = int(args["days"])
        except ValueError as exc:
            raise ToolArgumentError(f"days must be a whole number, got {args['days']!r}") from exc
        if days < 1:
            raise ToolArgumentError("days must be at least 1")
    return ListEventsArgs(date=_optional_date(args, "date"), days=days)


def _parse_create_event(args: dict[str, str]) -> CreateEventArgs:
    _require(args, "summary", "start_time")
    return CreateEventArgs(
        summary=args["summary"],
        start_time=parse_time(args["start_time"], "start_time"),
        date=_optional_date(args, "date"),
        end_time=_optional_time(args, "end_time"),
        location=args.get("location"),
        description=args.get("description"),
    )


def _parse_update_event(args: dict[str, str]) -> UpdateEventArgs:
    _require(args, "search_summary")
    return UpdateEventArgs(
        search_summary=args["search_summary"],
        date=_optional_date(args, "date"),
        new_summary=args.get("new_summary"),
        new_start_time=_optional_time(args, "new_start_time"),
        new_end_time=_optional_time(args, "new_end_time"),
        new_description=args.get("new_description"),
        new_location=args.get("new_location"),
    )


def _parse_delete_event(args: dict[str, str]) -> DeleteEventArgs:
    _require(args, "summary")
    return DeleteEventArgs(summary=args["summary"], date=_optional_date(args, "date"))


def _parse_list_tasks(args: dict[str, str]) -> ListTasksArgs:
    return ListTasksArgs(show_completed=args.get("show_completed", "").lower() == "true")


def _parse_create_task(args: dict[str, str]) -> CreateTaskArgs:
    _require(args, "title")
    return CreateTaskArgs(title=args["title"], notes=args.get("notes"), due=_optional_date(args, "due"))


def _parse_task_title(args: dict[str, str]) -> TaskTitleArgs:
    _require(args, "title")
    return TaskTitleArgs(title=args["title"])


ARGUMENT_PARSERS: dict[ToolName, Callable[[dict[str, str]], Any]] = {
    ToolName.LIST_EVENTS: _parse_list_events,
    ToolName.CREATE_EVENT: _parse_create_event,
    ToolName.UPDATE_EVENT: _parse_update_event,
    ToolName.DELETE_EVENT: _parse_delete_event,
    ToolName.LIST_TASKS: _parse_list_tasks,
    ToolName.CREATE_TASK: _parse_create_task,
    ToolName.COMPLETE_TASK: _parse_task_title,
    ToolName.DELETE_TASK: _parse_task_title,
}


def parse_arguments(name: ToolName, raw: str | Mapping[str, Any]) -> Any:
    return ARGUMENT_PARSERS[name](_decode(raw))


# --- results ---


def ok(**fields: Any) -> dict[str, Any]:
    return {"status": "ok", **fields}


def error(message: str, **fields: Any) -> dict[str, Any]:
    return {"status": "error", "message": message, **fields}


def _event_time(value: Mapping[str, Any] | None) -> str:
    value = value or {}
    return value.get("dateTime") or value.get("date") or ""


def _find_by_title(items: list[dict[str, Any]], key: str, needle: str) -> dict[str, Any] | None:
    lowered = needle.lower()
    for item in items:
        if lowered in str(item.get(key) or "").lower():
            return item
    return None


Executor = Callable[[Any, ToolCall, ToolContext | None], Awaitable[dict[str, Any]]]


class ToolRegistry:
    """Dispatches tool calls to one executor per ``ToolName``."""

    def __init__(
        self,
        calendar: CalendarProvider,
        tasks: TaskProvider,
        zone: tzinfo,
        *,
        clock: Clock | None = None,
        timeout_seconds: float | None = 30.0,
    ) -> None:
        self._calendar = calendar
        self._tasks = tasks
        self._zone = zone
        self._clock = clock or zone_clock(zone)
        self._timeout_seconds = timeout_seconds
        self._executors: dict[ToolName, Executor] = {
            ToolName.LIST_EVENTS: self._list_events,
            ToolName.CREATE_EVENT: self._create_event,
            ToolName.UPDATE_EVENT: self._update_event,
            ToolName.DELETE_EVENT: self._delete_event,
            ToolName.LIST_TASKS: self._list_tasks,
            ToolName.CREATE_TASK: self._create_task,
            ToolName.COMPLETE_TASK: self._complete_task,
            ToolName.DELETE_TASK: self._delete_task,
        }
        missing = [name.value for name in ToolName if name not in self._executors or name not in ARGUMENT_PARSERS]
        if missing:
            raise RuntimeError(f"tools without executor or parser: {', '.join(missing)}")

    async def execute(self, call: ToolCall, context: ToolContext | None = None) -> ToolCallResult:
        return ToolCallResult(correlation_id=call.id, payload=await self._run(call, context))

    async def _run(self, call: ToolCall, context: ToolContext | None) -> dict[str, Any]:
        try:
            name = ToolName(call.name)
        except ValueError:
            return error(f"Unknown tool: {call.name}")

        try:
            args = parse_arguments(name, call.arguments)
            work = self._executors[name](args, call, context)
            if self._timeout_seconds:
                return await asyncio.wait_for(work, timeout=self._timeout_seconds)
            return await work
        except ToolArgumentError as exc:
            return error(str(exc))
        except NotConnectedError as exc:
            return error(str(exc), code=NOT_CONNECTED_CODE)
        except GoogleAPIError as exc:
            LOGGER.warning("Tool %s failed upstream: %s", name.value, exc)
            return error(str(exc))
        except asyncio.TimeoutError:
            LOGGER.warning("Tool %s timed out after %ss", name.value, self._timeout_seconds)
            return error(f"{name.value} timed out after {self._timeout_seconds:g} seconds")
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Tool %s raised unexpectedly", name.value)
            return error(str(exc) or type(exc).__name__)

    def _today(self) -> date:
        return self._clock().astimezone(self._zone).date()

    async def _events_on(self, day: date) -> list[dict[str, Any]]:
        start, end = day_range(day, 1, self._zone)
        return await self._calendar.list_events(start, end)

    def _time_field(self, value: datetime) -> dict[str, str]:
        return {"dateTime": value.isoformat(), "timeZone": str(self._zone)}

    # --- calendar ---

    async def _list_events(self, args: ListEventsArgs, call: ToolCall, context: ToolContext | None) -> dict[str, Any]:
        day = args.date or self._today()
        start, end = day_range(day, args.days, self._zone)
        events = await self._calendar.list_events(start, end)
        return ok(
            count=len(events),
            date=day.isoformat(),
            days=args.days,
            events=[
                {
                    "id": event.get("id"),
                    "summary": event.get("summary") or "",
                    "start": _event_time(event.get("start")),
                    "end": _event_time(event.get("end")),
                    "location": event.get("location"),
                    "allDay": not (event.get("start") or {}).get("dateTime"),
                }
                for event in events
            ],
        )

    async def _create_event(self, args: CreateEventArgs, call: ToolCall, context: ToolContext | None) -> dict[str, Any]:
        day = args.date or self._today()
        start = at(day, args.start_time, self._zone)
        if args.end_time is None:
            end = start + DEFAULT_EVENT_DURATION
        else:
            end = at(day, args.end_time, self._zone)
            if end < start:
                end += timedelta(days=1)

        fields: dict[str, Any] = {
            "summary": args.summary,
            "start": self._time_field(start),
            "end": self._time_field(end),
        }
        if args.description:
            fields["description"] = args.description
        if args.location:
            fields["location"] = args.location
        if context is not None:
            fields["id"] = context.idempotency_key(call.id)

        event = await self._calendar.create_event(fields)
        return ok(
            event={
                "id": event.get("id"),
                "summary": event.get("summary") or args.summary,
                "date": day.isoformat(),
                "start_time": hhmm(start),
                "end_time": hhmm(end),
                "location": args.location,
            }
        )

    async def _update_event(self, args: UpdateEventArgs, call: ToolCall, context: ToolContext | None) -> dict[str, Any]:
        day = args.date or self._today()
        match = _find_by_title(await self._events_on(day), "summary", args.search_summary)
        if match is None:
            return error(f'Event "{args.search_summary}" not found on {day.isoformat()}')

        original_start = (match.get("start") or {}).get("dateTime")
        original_end = (match.get("end") or {}).get("dateTime")
        retimed = args.new_start_time is not None or args.new_end_time is not None
        if retimed and not original_start and (args.new_start_time is None or args.new_end_time is None):
            title = match.get("summary") or args.search_summary
            return error(
                f'"{title}" is an all-day event; supply both new_start_time and new_end_time to give it a time'
            )

        updates: dict[str, Any] = {}
        changes: list[str] = []
        if args.new_summary:
            updates["summary"] = args.new_summary
            changes.append(f'title -> "{args.new_summary}"')
        new_start: datetime | None = None
        if args.new_start_time is not None:
            new_start = at(day, args.new_start_time, self._zone)
            updates["start"] = self._time_field(new_start)
            changes.append(f"start -> {hhmm(args.new_start_time)}")
        if args.new_end_time is not None:
            new_end = at(day, args.new_end_time, self._zone)
            reference = new_start or (parse_rfc3339(original_start) if original_start else None)
            if reference is not None and new_end < reference:
                new_end += timedelta(days=1)
            updates["end"] = self._time_field(new_end)
            changes.append(f"end -> {hhmm(args.new_end_time)}")
        if args.new_description:
            updates["description"] = args.new_description
            changes.append("description updated")
        if args.new_location:
            updates["location"] = args.new_location
            changes.append(f'location -> "{args.new_location}"')

        if new_start is not None and args.new_end_time is None and original_start and original_end:
            duration = parse_rfc3339(original_end) - parse_rfc3339(original_start)
            new_end = new_start + duration
            updates["end"] = self._time_field(new_end)
            changes.append(f"end -> {hhmm(new_end)} (duration kept)")

        if not updates:
            return error("no changes requested; supply at least one new_* field")

        await self._calendar.update_event(match["id"], updates)
        return ok(event_id=match["id"], original_summary=match.get("summary") or "", changes=changes)

    async def _delete_event(self, args: DeleteEventArgs, call: ToolCall, context: ToolContext | None) -> dict[str, Any]:
        day = args.date or self._today()
        match = _find_by_title(await self._events_on(day), "summary", args.summary)
        if match is None:
            return error(f'Event "{args.summary}" not found on {day.isoformat()}')

        await self._calendar.delete_event(match["id"])
        return ok(deleted_summary=match.get("summary") or "", date=day.isoformat())

    # --- tasks ---

    async def _list_tasks(self, args: ListTasksArgs, call: ToolCall, context: ToolContext | None) -> dict[str, Any]:
        tasks = await self._tasks.list_tasks(include_completed=args.show_completed)
        return ok(
            count=len(tasks),
            show_completed=args.show_completed,
            tasks=[
                {
                    "id": task.get("id"),
                    "title": task.get("title") or "",
                    "status": task.get("status"),
                    "due": task.get("due"),
                    "notes": task.get("notes"),
                }
                for task in tasks
            ],
        )

    async def _create_task(self, args: CreateTaskArgs, call: ToolCall, context: ToolContext | None) -> dict[str, Any]:
        fields: dict[str, Any] = {"title": args.title}
        if args.notes:
            fields["notes"] = args.notes
        if args.due is not None:
            fields["due"] = f"{args.due.isoformat()}T00:00:00.000Z"

        task = await self._tasks.create_task(fields)
        return ok(
            task={
                "id": task.get("id"),
                "title": task.get("title") or args.title,
                "due": args.due.isoformat() if args.due else None,
            }
        )

    async def _complete_task(self, args: TaskTitleArgs, call: ToolCall, context: ToolContext | None) -> dict[str, Any]:
        match = _find_by_title(await self._tasks.list_tasks(include_completed=False), "title", args.title)
        if match is None:
            return error(f'Task "{args.title}" not found')

        await self._tasks.complete_task(match["id"])
        return ok(completed_title=match.get("title") or "")

    async def _delete_task(self, args: TaskTitleArgs, call: ToolCall, context: ToolContext | None) -> dict[str, Any]:
        match = _find_by_title(await self._tasks.list_tasks(include_completed=True), "title", args.title)
        if match is None:
            return error(f'Task "{args.title}" not found')

        await self._tasks.delete_task(match["id"])
        return ok(deleted_title=match.get("title") or "")


def _function(name: ToolName, description: str, properties: dict[str, str], required: list[str]) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name.value,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": {
                    key: {"type": "string", "description": text} for key, text in properties.items()
                },
                "required": required,
            },
        },
    }


TOOL_CATALOG: list[dict[str, Any]] = [
    _function(
        ToolName.LIST_EVENTS,
        "List calendar events for a date range. Use when the user asks about their schedule "
        "or what is happening on a day.",
        {
            "date": "The target date in YYYY-MM-DD format. Use today if not specified.",
            "days": "Number of days to look ahead from the date. Default 1.",
        },
        ["date"],
    ),
    _function(
        ToolName.CREATE_EVENT,
        "Create a new calendar event. Use when the user wants to schedule a meeting, appointment or event.",
        {
            "summary": "Event title",
            "date": "Event date in YYYY-MM-DD format",
            "start_time": "Start time in HH:MM (24h) format",
            "end_time": "End time in HH:MM (24h) format. Default: 1 hour after start.",
            "location": "Event location (optional)",
            "description": "Event description (optional)",
        },
        ["summary", "date", "start_time"],
    ),
    _function(
        ToolName.UPDATE_EVENT,
        "Update an existing calendar event, found by (part of) its current title on one day.",
        {
            "search_summary": "Current event title to search for",
            "date": "Date of the event in YYYY-MM-DD format. Default: today.",
            "new_summary": "New event title (only when changing the title)",
            "new_start_time": "New start time in HH:MM (24h) format (optional)",
            "new_end_time": "New end time in HH:MM (24h) format (optional)",
            "new_description": "New event description (optional)",
            "new_location": "New event location (optional)",
        },
        ["search_summary"],
    ),
    _function(
        ToolName.DELETE_EVENT,
        "Delete a calendar event, found by (part of) its title on one day.",
        {
            "summary": "Event title to search for and delete",
            "date": "Date of the event in YYYY-MM-DD format. Default: today.",
        },
        ["summary"],
    ),
    _function(
        ToolName.LIST_TASKS,
        "List to-do items. Use when the user asks about tasks or what needs to be done.",
        {"show_completed": "Whether to include completed tasks: 'true' or 'false'. Default false."},
        [],
    ),
    _function(
        ToolName.CREATE_TASK,
        "Create a new to-do item. Call once per task; for several tasks call it several times.",
        {
            "title": "Task title",
            "notes": "Task notes (optional)",
            "due": "Due date in YYYY-MM-DD format (optional)",
        },
        ["title"],
    ),
    _function(
        ToolName.COMPLETE_TASK,
        "Mark a task as completed. Use when the user says a task is done.",
        {"title": "Task title to search for and complete"},
        ["title"],
    ),
    _function(
        ToolName.DELETE_TASK,
        "Delete a task. Use when the user wants to remove a task.",
        {"title": "Task title to search for and delete"},
        ["title"],
    ),
]
