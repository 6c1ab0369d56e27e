from __future__ import annotations

import asyncio
import json
from datetime import datetime

import pytest

from aide.assistant.tools import TOOL_CATALOG, ToolContext, ToolName, ToolRegistry, parse_arguments
from aide.errors import GoogleAPIError, ToolArgumentError
from aide.types import ToolCall

from fakes import SEOUL, FakeCalendar, FakeTasks, fixed_clock, timed_event

NOW = datetime(2024, 6, 10, 9, 30, tzinfo=SEOUL)


def _registry(calendar: FakeCalendar | None = None, tasks: FakeTasks | None = None, **kwargs) -> ToolRegistry:
    return ToolRegistry(
        calendar or FakeCalendar(),
        tasks or FakeTasks(),
        SEOUL,
        clock=fixed_clock(NOW),
        **kwargs,
    )


def _call(name: str, arguments: dict | str, call_id: str = "call-1") -> ToolCall:
    raw = arguments if isinstance(arguments, str) else json.dumps(arguments)
    return ToolCall(id=call_id, name=name, arguments=raw)


def test_catalog_covers_every_tool() -> None:
    names = {entry["function"]["name"] for entry in TOOL_CATALOG}
    assert names == {name.value for name in ToolName}
    for entry in TOOL_CATALOG:
        for param in entry["function"]["parameters"]["properties"].values():
            assert param["type"] == "string"


def test_parse_arguments_reports_missing_fields() -> None:
    with pytest.raises(ToolArgumentError, match="summary and start_time are required"):
        parse_arguments(ToolName.CREATE_EVENT, '{"date": "2024-06-11"}')


def test_parse_arguments_ignores_empty_values() -> None:
    args = parse_arguments(ToolName.UPDATE_EVENT, {"search_summary": "sync", "new_summary": "", "new_location": None})
    assert args.new_summary is None
    assert args.new_location is None


@pytest.mark.asyncio
async def test_list_events_defaults_to_today() -> None:
    calendar = FakeCalendar(
        [
            timed_event("e1", "Standup", datetime(2024, 6, 10, 10, 0, tzinfo=SEOUL), location="Room A"),
            timed_event("e2", "Tomorrow", datetime(2024, 6, 11, 10, 0, tzinfo=SEOUL)),
        ]
    )
    result = await _registry(calendar).execute(_call("list_events", {}))

    assert result.correlation_id == "call-1"
    assert result.payload["status"] == "ok"
    assert result.payload["date"] == "2024-06-10"
    assert result.payload["count"] == 1
    event = result.payload["events"][0]
    assert event["summary"] == "Standup"
    assert event["location"] == "Room A"
    assert event["allDay"] is False
    start, end = calendar.list_calls[0]
    assert start == datetime(2024, 6, 10, 0, 0, tzinfo=SEOUL)
    assert end == datetime(2024, 6, 11, 0, 0, tzinfo=SEOUL)


@pytest.mark.asyncio
async def test_list_events_spans_several_days() -> None:
    calendar = FakeCalendar()
    result = await _registry(calendar).execute(_call("list_events", {"date": "2024-06-11", "days": "3"}))

    assert result.payload["days"] == 3
    start, end = calendar.list_calls[0]
    assert start.date().isoformat() == "2024-06-11"
    assert end.date().isoformat() == "2024-06-14"


@pytest.mark.asyncio
async def test_create_event_defaults_to_one_hour() -> None:
    calendar = FakeCalendar()
    result = await _registry(calendar).execute(
        _call("create_event", {"summary": "Client call", "date": "2024-06-11", "start_time": "15:00"})
    )

    assert result.payload["status"] == "ok"
    assert result.payload["event"]["start_time"] == "15:00"
    assert result.payload["event"]["end_time"] == "16:00"
    created = calendar.created[0]
    assert created["start"]["dateTime"] == "2024-06-11T15:00:00+09:00"
    assert created["end"]["dateTime"] == "2024-06-11T16:00:00+09:00"
    assert created["start"]["timeZone"] == "Asia/Seoul"
    assert "id" not in created


@pytest.mark.asyncio
async def test_create_event_uses_today_and_rolls_end_past_midnight() -> None:
    calendar = FakeCalendar()
    result = await _registry(calendar).execute(
        _call("create_event", {"summary": "Night shift", "start_time": "23:00", "end_time": "01:00"})
    )

    assert result.payload["event"]["date"] == "2024-06-10"
    assert calendar.created[0]["end"]["dateTime"] == "2024-06-11T01:00:00+09:00"


@pytest.mark.asyncio
async def test_create_event_sends_stable_idempotency_key() -> None:
    calendar = FakeCalendar()
    registry = _registry(calendar)
    context = ToolContext(conversation_id="42", round_number=1)
    call = _call("create_event", {"summary": "Sync", "date": "2024-06-11", "start_time": "10:00"}, "call-7")

    await registry.execute(call, context)
    await registry.execute(call, context)

    first, second = calendar.created
    assert first["id"] == second["id"] == context.idempotency_key("call-7")
    assert first["id"] != ToolContext(conversation_id="42", round_number=2).idempotency_key("call-7")


@pytest.mark.asyncio
async def test_create_event_rejects_bad_time() -> None:
    calendar = FakeCalendar()
    result = await _registry(calendar).execute(
        _call("create_event", {"summary": "x", "date": "2024-06-11", "start_time": "3pm"})
    )

    assert result.payload["status"] == "error"
    assert "start_time" in result.payload["message"]
    assert calendar.created == []


@pytest.mark.asyncio
async def test_update_event_keeps_duration_when_only_start_moves() -> None:
    calendar = FakeCalendar([timed_event("e1", "Team sync", datetime(2024, 6, 12, 10, 0, tzinfo=SEOUL), minutes=90)])

    result = await _registry(calendar).execute(
        _call("update_event", {"search_summary": "sync", "date": "2024-06-12", "new_start_time": "14:00"})
    )

    assert result.payload["status"] == "ok"
    event_id, fields = calendar.updated[0]
    assert event_id == "e1"
    assert fields["start"]["dateTime"] == "2024-06-12T14:00:00+09:00"
    assert fields["end"]["dateTime"] == "2024-06-12T15:30:00+09:00"
    assert result.payload["original_summary"] == "Team sync"


@pytest.mark.asyncio
async def test_update_event_matches_title_case_insensitively() -> None:
    calendar = FakeCalendar([timed_event("e1", "Team sync", datetime(2024, 6, 10, 10, 0, tzinfo=SEOUL))])
    registry = _registry(calendar)

    lower = await registry.execute(_call("update_event", {"search_summary": "sync", "new_location": "Room B"}))
    upper = await registry.execute(_call("update_event", {"search_summary": "SYNC", "new_location": "Room B"}))

    assert lower.payload["event_id"] == upper.payload["event_id"] == "e1"


@pytest.mark.asyncio
async def test_update_event_not_found_names_the_day() -> None:
    result = await _registry().execute(_call("update_event", {"search_summary": "Lunch", "new_start_time": "12:00"}))

    assert result.payload == {"status": "error", "message": 'Event "Lunch" not found on 2024-06-10'}


@pytest.mark.asyncio
async def test_update_event_without_changes_is_an_error() -> None:
    calendar = FakeCalendar([timed_event("e1", "Team sync", datetime(2024, 6, 10, 10, 0, tzinfo=SEOUL))])
    result = await _registry(calendar).execute(_call("update_event", {"search_summary": "sync"}))

    assert result.payload["status"] == "error"
    assert calendar.updated == []


@pytest.mark.asyncio
async def test_delete_event_removes_the_match() -> None:
    calendar = FakeCalendar([timed_event("e9", "Dentist", datetime(2024, 6, 10, 16, 0, tzinfo=SEOUL))])
    result = await _registry(calendar).execute(_call("delete_event", {"summary": "dentist"}))

    assert result.payload == {"status": "ok", "deleted_summary": "Dentist", "date": "2024-06-10"}
    assert calendar.deleted == ["e9"]


@pytest.mark.asyncio
async def test_list_tasks_hides_completed_by_default() -> None:
    tasks = FakeTasks([{"id": "t1", "title": "Report"}, {"id": "t2", "title": "Old", "status": "completed"}])
    registry = _registry(tasks=tasks)

    open_only = await registry.execute(_call("list_tasks", {}))
    everything = await registry.execute(_call("list_tasks", {"show_completed": "true"}))

    assert open_only.payload["count"] == 1
    assert everything.payload["count"] == 2
    assert everything.payload["show_completed"] is True


@pytest.mark.asyncio
async def test_create_task_formats_due_date() -> None:
    tasks = FakeTasks()
    result = await _registry(tasks=tasks).execute(_call("create_task", {"title": "Send invoice", "due": "2024-06-14"}))

    assert tasks.created == [{"title": "Send invoice", "due": "2024-06-14T00:00:00.000Z"}]
    assert result.payload["task"]["due"] == "2024-06-14"


@pytest.mark.asyncio
async def test_complete_task_not_found() -> None:
    tasks = FakeTasks([{"id": "t1", "title": "Report"}, {"id": "t2", "title": "Call mom", "status": "completed"}])
    result = await _registry(tasks=tasks).execute(_call("complete_task", {"title": "Call mom"}))

    assert result.payload == {"status": "error", "message": 'Task "Call mom" not found'}
    assert tasks.completed == []


@pytest.mark.asyncio
async def test_delete_task_searches_completed_tasks_too() -> None:
    tasks = FakeTasks([{"id": "t2", "title": "Call mom", "status": "completed"}])
    result = await _registry(tasks=tasks).execute(_call("delete_task", {"title": "call"}))

    assert result.payload["deleted_title"] == "Call mom"
    assert tasks.deleted == ["t2"]


@pytest.mark.asyncio
async def test_not_connected_is_flagged() -> None:
    result = await _registry(FakeCalendar(connected=False)).execute(_call("list_events", {"date": "2024-06-10"}))

    assert result.payload["status"] == "error"
    assert result.payload["code"] == "not_connected"


@pytest.mark.asyncio
async def test_provider_errors_become_error_results() -> None:
    class FailingCalendar(FakeCalendar):
        async def list_events(self, time_min, time_max, limit=50):
            raise GoogleAPIError("Google Calendar API error (500): boom", status_code=500)

    result = await _registry(FailingCalendar()).execute(_call("list_events", {"date": "2024-06-10"}))

    assert result.payload["status"] == "error"
    assert "500" in result.payload["message"]
    assert "code" not in result.payload


@pytest.mark.asyncio
async def test_unknown_tool_and_malformed_arguments() -> None:
    registry = _registry()

    unknown = await registry.execute(_call("send_email", {}))
    malformed = await registry.execute(_call("create_task", "{not json"))
    not_object = await registry.execute(_call("create_task", "[1, 2]"))

    assert unknown.payload == {"status": "error", "message": "Unknown tool: send_email"}
    assert malformed.payload["status"] == "error"
    assert not_object.payload["message"] == "arguments must be a JSON object"


@pytest.mark.asyncio
async def test_slow_tool_times_out() -> None:
    class SlowTasks(FakeTasks):
        async def list_tasks(self, list_id=None, include_completed=False):
            await asyncio.sleep(1)
            return []

    result = await _registry(tasks=SlowTasks(), timeout_seconds=0.01).execute(_call("list_tasks", {}))

    assert result.payload["status"] == "error"
    assert "timed out" in result.payload["message"]


@pytest.mark.asyncio
async def test_one_hour_event_moved_to_afternoon_stays_one_hour() -> None:
    calendar = FakeCalendar([timed_event("e1", "Review", datetime(2024, 6, 10, 9, 0, tzinfo=SEOUL))])

    await _registry(calendar).execute(_call("update_event", {"search_summary": "Review", "new_start_time": "14:00"}))

    _, fields = calendar.updated[0]
    assert fields["start"]["dateTime"] == "2024-06-10T14:00:00+09:00"
    assert fields["end"]["dateTime"] == "2024-06-10T15:00:00+09:00"


@pytest.mark.asyncio
@pytest.mark.parametrize("needle", ["sync", "SYNC"])
async def test_delete_event_matches_any_case(needle: str) -> None:
    calendar = FakeCalendar([timed_event("e1", "Team Sync Meeting", datetime(2024, 6, 10, 11, 0, tzinfo=SEOUL))])

    result = await _registry(calendar).execute(_call("delete_event", {"summary": needle}))

    assert result.payload["deleted_summary"] == "Team Sync Meeting"
    assert calendar.deleted == ["e1"]


@pytest.mark.asyncio
async def test_complete_task_on_empty_list_is_an_error_result() -> None:
    result = await _registry().execute(_call("complete_task", {"title": "nonexistent-xyz"}))

    assert result.is_error
    assert result.payload["message"] == 'Task "nonexistent-xyz" not found'


@pytest.mark.asyncio
async def test_update_event_end_before_new_start_rolls_to_next_day() -> None:
    calendar = FakeCalendar([timed_event("e1", "Deploy", datetime(2024, 6, 10, 20, 0, tzinfo=SEOUL))])

    result = await _registry(calendar).execute(
        _call("update_event", {"search_summary": "deploy", "new_start_time": "23:00", "new_end_time": "01:00"})
    )

    assert result.payload["status"] == "ok"
    _, fields = calendar.updated[0]
    assert fields["start"]["dateTime"] == "2024-06-10T23:00:00+09:00"
    assert fields["end"]["dateTime"] == "2024-06-11T01:00:00+09:00"


@pytest.mark.asyncio
async def test_update_event_end_only_is_compared_with_current_start() -> None:
    calendar = FakeCalendar([timed_event("e1", "Deploy", datetime(2024, 6, 10, 22, 0, tzinfo=SEOUL))])

    await _registry(calendar).execute(_call("update_event", {"search_summary": "deploy", "new_end_time": "00:30"}))

    _, fields = calendar.updated[0]
    assert "start" not in fields
    assert fields["end"]["dateTime"] == "2024-06-11T00:30:00+09:00"


@pytest.mark.asyncio
async def test_all_day_event_needs_both_times() -> None:
    holiday = {"id": "e5", "summary": "Company holiday", "start": {"date": "2024-06-10"}, "end": {"date": "2024-06-11"}}
    calendar = FakeCalendar([holiday])
    registry = _registry(calendar)

    start_only = await registry.execute(_call("update_event", {"search_summary": "holiday", "new_start_time": "10:00"}))
    both = await registry.execute(
        _call("update_event", {"search_summary": "holiday", "new_start_time": "10:00", "new_end_time": "12:00"})
    )

    assert start_only.payload["status"] == "error"
    assert "all-day" in start_only.payload["message"]
    assert both.payload["status"] == "ok"
    assert calendar.updated == [
        (
            "e5",
            {
                "start": {"dateTime": "2024-06-10T10:00:00+09:00", "timeZone": "Asia/Seoul"},
                "end": {"dateTime": "2024-06-10T12:00:00+09:00", "timeZone": "Asia/Seoul"},
            },
        )
    ]


@pytest.mark.asyncio
async def test_all_day_event_can_still_be_renamed() -> None:
    holiday = {"id": "e5", "summary": "Company holiday", "start": {"date": "2024-06-10"}, "end": {"date": "2024-06-11"}}
    calendar = FakeCalendar([holiday])

    result = await _registry(calendar).execute(
        _call("update_event", {"search_summary": "holiday", "new_summary": "Founders day"})
    )

    assert result.payload["status"] == "ok"
    assert calendar.updated == [("e5", {"summary": "Founders day"})]
