from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Any, Protocol

from aide.assistant.clock import day_range, hhmm, parse_rfc3339
from aide.errors import LLMError, NotConnectedError
from aide.storage.reminders import ReminderStore

LOGGER = logging.getLogger(__name__)

MAX_BRIEFING_TASKS = 10
WEEKDAYS_SHORT_KO = ["월", "화", "수", "목", "금", "토", "일"]

SUMMARY_SYSTEM_PROMPT = "당신은 개인 일정 비서입니다. 간결하고 실용적으로 답변합니다."


class Summarizer(Protocol):
    async def summarize(self, system: str, prompt: str, max_tokens: int = 500) -> str: ...


@dataclass(frozen=True)
class Briefing:
    text: str
    calendar_connected: bool
    events_count: int = 0
    tasks_count: int = 0


class BriefingBuilder:
    """Morning summary of today's events and open tasks."""

    def __init__(
        self,
        calendar: Any,
        tasks: Any,
        reminders: ReminderStore,
        zone: tzinfo,
        *,
        summarizer: Summarizer | None = None,
        summarize: bool = False,
        owner_name: str = "대표님",
    ) -> None:
        self._calendar = calendar
        self._tasks = tasks
        self._reminders = reminders
        self._zone = zone
        self._summarizer = summarizer
        self._summarize = summarize
        self._owner_name = owner_name

    async def build(self, now: datetime) -> Briefing:
        local_now = now.astimezone(self._zone)
        start, end = day_range(local_now.date(), 1, self._zone)
        try:
            events, tasks = await asyncio.gather(
                self._calendar.list_events(start, end),
                self._tasks.list_tasks(include_completed=False),
            )
        except NotConnectedError:
            return Briefing(text=await self._disconnected_text(), calendar_connected=False)

        text = format_briefing(local_now, events, tasks, self._zone, owner_name=self._owner_name)
        if self._summarize and self._summarizer is not None and events:
            summary = await self._summary(self._summarizer, events)
            if summary:
                text = f"{text}\n\n📝 {summary}"
        return Briefing(
            text=text,
            calendar_connected=True,
            events_count=len(events),
            tasks_count=len(tasks),
        )

    async def _summary(self, summarizer: Summarizer, events: list[dict[str, Any]]) -> str | None:
        lines = "\n".join(f"- {_event_line(event, self._zone)}" for event in events)
        prompt = (
            "아래 오늘 일정을 간결하고 실용적으로 요약해 주세요. 핵심 일정, 주의사항, 빈 시간대를 포함하고, "
            f"한국어로 3-5문장 이내로 작성해 주세요.\n\n오늘 일정 ({len(events)}건):\n{lines}"
        )
        try:
            return await summarizer.summarize(SUMMARY_SYSTEM_PROMPT, prompt)
        except LLMError as exc:
            LOGGER.warning("Briefing summary failed, using template only: %s", exc)
            return None

    async def _disconnected_text(self) -> str:
        reminders = await self._reminders.list_active()
        if not reminders:
            return "Google Calendar 미연결 상태이며, 활성 리마인더가 없습니다."
        listing = "\n".join(f"  - [{r.type}] {r.title}" for r in reminders)
        return f"Google Calendar 미연결 상태입니다.\n\n활성 리마인더 {len(reminders)}건:\n{listing}"


def _event_line(event: dict[str, Any], zone: tzinfo) -> str:
    start_raw = (event.get("start") or {}).get("dateTime")
    start = hhmm(parse_rfc3339(start_raw).astimezone(zone)) if start_raw else "종일"
    location = f" @ {event['location']}" if event.get("location") else ""
    return f"{start} {event.get('summary') or '(제목 없음)'}{location}"


def format_briefing(
    now: datetime,
    events: list[dict[str, Any]],
    tasks: list[dict[str, Any]],
    zone: tzinfo,
    *,
    owner_name: str = "대표님",
) -> str:
    day_label = f"{now.month}. {now.day}. ({WEEKDAYS_SHORT_KO[now.weekday()]})"
    lines = [f"🌅 좋은 아침입니다, {owner_name}!", "", f"📅 오늘 일정 ({day_label})"]

    if not events:
        lines.append("  오늘은 일정이 없습니다.")
    for event in events:
        lines.append(f"  • {_event_line(event, zone)}")
    lines.append("")

    lines.append("✅ 오늘 할일")
    if not tasks:
        lines.append("  미완료 할일이 없습니다.")
    for task in tasks[:MAX_BRIEFING_TASKS]:
        due = f" (기한: {task['due'][:10]})" if task.get("due") else ""
        lines.append(f"  • {task.get('title') or ''}{due}")
    if len(tasks) > MAX_BRIEFING_TASKS:
        lines.append(f"  ... 외 {len(tasks) - MAX_BRIEFING_TASKS}건")

    lines.append("")
    lines.append("오늘도 화이팅하세요! 💪")
    return "\n".join(lines)
