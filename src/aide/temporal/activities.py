from __future__ import annotations

import logging
from typing import Any

from temporalio import activity

from aide.assistant.clock import Clock
from aide.briefing import BriefingBuilder
from aide.notify import TelegramNotifier
from aide.reminders import ReminderEngine

LOGGER = logging.getLogger(__name__)


class SchedulerActivities:
    """Activities bound to the running services; registered on the worker as instance methods."""

    def __init__(
        self,
        engine: ReminderEngine,
        briefing: BriefingBuilder,
        notifier: TelegramNotifier,
        clock: Clock,
    ) -> None:
        self._engine = engine
        self._briefing = briefing
        self._notifier = notifier
        self._clock = clock

    @activity.defn(name="run_reminder_tick")
    async def run_reminder_tick(self) -> dict[str, Any]:
        result = await self._engine.tick(self._clock())
        return result.to_dict()

    @activity.defn(name="send_daily_briefing")
    async def send_daily_briefing(self) -> dict[str, Any]:
        now = self._clock()
        briefing = await self._briefing.build(now)
        sent = await self._notifier.deliver_to_owner(briefing.text)
        if not sent:
            LOGGER.warning("Daily briefing for %s was not delivered", now.date().isoformat())
        return {
            "briefing": briefing.text,
            "calendar_connected": briefing.calendar_connected,
            "events_count": briefing.events_count,
            "tasks_count": briefing.tasks_count,
            "telegram_sent": sent,
            "generated_at": now.isoformat(),
        }
