from __future__ import annotations

from datetime import timedelta
from typing import Any

from temporalio import workflow
from temporalio.common import RetryPolicy

with workflow.unsafe.imports_passed_through():
    from aide.temporal.activities import SchedulerActivities

REMINDER_TICK_WORKFLOW_ID = "aide-reminder-tick"
DAILY_BRIEFING_WORKFLOW_ID = "aide-daily-briefing"

_RETRY_POLICY = RetryPolicy(
    initial_interval=timedelta(seconds=1),
    backoff_coefficient=2.0,
    maximum_interval=timedelta(seconds=10),
    maximum_attempts=3,
)


@workflow.defn
class ReminderTickWorkflow:
    @workflow.run
    async def run(self) -> dict[str, Any]:
        # Single attempt; a retried tick would resend reminders.
        return await workflow.execute_activity_method(
            SchedulerActivities.run_reminder_tick,
            start_to_close_timeout=timedelta(seconds=60),
            retry_policy=RetryPolicy(maximum_attempts=1),
        )


@workflow.defn
class DailyBriefingWorkflow:
    @workflow.run
    async def run(self) -> dict[str, Any]:
        return await workflow.execute_activity_method(
            SchedulerActivities.send_daily_briefing,
            schedule_to_close_timeout=timedelta(seconds=120),
            retry_policy=_RETRY_POLICY,
        )
