"""Reminder management behind the ``/remind``, ``/unremind``, ``/delremind`` and ``/reminders`` commands.

Each function takes the already split command arguments and returns the reply
text, so the Telegram handlers stay thin.
"""

from __future__ import annotations

from datetime import datetime, timedelta, tzinfo
from typing import Any, Protocol, Sequence

from aide.assistant.clock import at, hhmm, parse_date, parse_rfc3339, parse_time
from aide.assistant.loop import NOT_CONNECTED_REPLY
from aide.errors import GoogleAPIError, NotConnectedError, ToolArgumentError
from aide.storage.reminders import Reminder, ReminderStore

EVENT_LOOKAHEAD = timedelta(days=7)
SHORT_ID_LENGTH = 8

REMIND_USAGE = (
    "사용법:\n"
    "/remind 2024-06-14 18:00 세금 신고 - 지정한 시각이 지나면 알림\n"
    "/remind before 15 팀 회의 - 7일 안의 일정 시작 15분 전에 알림"
)


class EventSearch(Protocol):
    async def list_events(self, time_min: datetime, time_max: datetime, limit: int = ...) -> list[dict[str, Any]]: ...


def short_id(reminder: Reminder) -> str:
    return reminder.id[:SHORT_ID_LENGTH]


def find_reminder(reminders: Sequence[Reminder], ref: str) -> Reminder | None:
    """Match by id prefix first, then by case-insensitive title substring."""
    needle = ref.strip().lower()
    if not needle:
        return None
    for reminder in reminders:
        if reminder.id.lower().startswith(needle):
            return reminder
    for reminder in reminders:
        if needle in reminder.title.lower():
            return reminder
    return None


async def create_reminder(
    store: ReminderStore,
    calendar: EventSearch,
    zone: tzinfo,
    now: datetime,
    args: Sequence[str],
) -> str:
    if len(args) >= 3 and args[0].lower() == "before":
        return await _create_event_reminder(store, calendar, now, args[1], " ".join(args[2:]))
    if len(args) >= 3:
        return await _create_deadline_reminder(store, zone, args[0], args[1], " ".join(args[2:]))
    return REMIND_USAGE


async def _create_deadline_reminder(
    store: ReminderStore,
    zone: tzinfo,
    day_text: str,
    time_text: str,
    title: str,
) -> str:
    try:
        deadline = at(parse_date(day_text), parse_time(time_text), zone)
    except ToolArgumentError as exc:
        return f"{exc}\n\n{REMIND_USAGE}"

    reminder = await store.create(title=title, type="deadline", deadline_at=deadline)
    return f"리마인더를 등록했습니다 ({short_id(reminder)}): {deadline.strftime('%Y-%m-%d')} {hhmm(deadline)} {title}"


async def _create_event_reminder(
    store: ReminderStore,
    calendar: EventSearch,
    now: datetime,
    minutes_text: str,
    query: str,
) -> str:
    try:
        minutes = int(minutes_text)
    except ValueError:
        return f"분은 숫자로 입력해 주세요: {minutes_text!r}\n\n{REMIND_USAGE}"
    if minutes < 1:
        return f"분은 1 이상이어야 합니다.\n\n{REMIND_USAGE}"

    try:
        events = await calendar.list_events(now, now + EVENT_LOOKAHEAD)
    except NotConnectedError:
        return NOT_CONNECTED_REPLY
    except GoogleAPIError as exc:
        return f"일정을 불러오지 못했습니다: {exc}"

    needle = query.lower()
    match = next(
        (
            event
            for event in events
            if (event.get("start") or {}).get("dateTime") and needle in str(event.get("summary") or "").lower()
        ),
        None,
    )
    if match is None:
        return f'앞으로 7일 안에 "{query}" 일정이 없습니다.'

    start = parse_rfc3339(match["start"]["dateTime"])
    title = match.get("summary") or query
    reminder = await store.create(
        title=title,
        type="event_before",
        google_event_id=match["id"],
        minutes_before=minutes,
        description=f"{start.strftime('%m/%d')} {hhmm(start)} 시작",
    )
    return f"리마인더를 등록했습니다 ({short_id(reminder)}): {title} 시작 {minutes}분 전"


async def deactivate_reminder(store: ReminderStore, ref: str) -> str:
    reminder = find_reminder(await store.list_active(), ref)
    if reminder is None:
        return f'"{ref}"에 해당하는 활성 리마인더가 없습니다.'
    await store.update(reminder.id, active=False)
    return f"리마인더를 비활성화했습니다: {reminder.title}"


async def delete_reminder(store: ReminderStore, ref: str) -> str:
    reminder = await store.get(ref.strip()) or find_reminder(await store.list_active(), ref)
    if reminder is None:
        return f'"{ref}"에 해당하는 리마인더가 없습니다.'
    await store.delete(reminder.id)
    return f"리마인더를 삭제했습니다: {reminder.title}"


async def describe_reminders(store: ReminderStore, ref: str | None = None) -> str:
    reminders = await store.list_active()
    if ref:
        reminder = find_reminder(reminders, ref)
        if reminder is None:
            return f'"{ref}"에 해당하는 활성 리마인더가 없습니다.'
        return await _describe_one(store, reminder)

    if not reminders:
        return "활성 리마인더가 없습니다."
    lines = [f"활성 리마인더 {len(reminders)}건:"]
    lines.extend(f"  - {short_id(r)} [{r.type}] {r.title}" for r in reminders)
    return "\n".join(lines)


async def _describe_one(store: ReminderStore, reminder: Reminder) -> str:
    lines = [f"[{reminder.type}] {reminder.title} ({short_id(reminder)})"]
    if reminder.description:
        lines.append(reminder.description)
    if reminder.deadline_at is not None:
        lines.append(f"기한: {reminder.deadline_at.isoformat()}")
    if reminder.minutes_before is not None:
        lines.append(f"일정 {reminder.minutes_before}분 전 알림")

    logs = await store.logs(reminder.id)
    if not logs:
        lines.append("알림 기록 없음")
    for log in logs:
        lines.append(f"  - {log.triggered_at.isoformat()} {log.status}")
    return "\n".join(lines)
