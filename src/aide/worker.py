from __future__ import annotations

import argparse
import asyncio
import logging

from telegram import Bot
from temporalio.client import Client
from temporalio.exceptions import WorkflowAlreadyStartedError
from temporalio.worker import Worker

from aide.config import AppConfig, load_settings
from aide.services import Services, build_services
from aide.temporal import connect_temporal
from aide.temporal.activities import SchedulerActivities
from aide.temporal.workflows import (
    DAILY_BRIEFING_WORKFLOW_ID,
    REMINDER_TICK_WORKFLOW_ID,
    DailyBriefingWorkflow,
    ReminderTickWorkflow,
)

LOGGER = logging.getLogger(__name__)


async def ensure_schedules(client: Client, config: AppConfig) -> None:
    """Start the cron workflows once; a running schedule is left as is."""
    schedules = (
        (ReminderTickWorkflow.run, REMINDER_TICK_WORKFLOW_ID, config.scheduler.reminder_cron),
        (DailyBriefingWorkflow.run, DAILY_BRIEFING_WORKFLOW_ID, config.scheduler.briefing_cron),
    )
    for run, workflow_id, cron in schedules:
        try:
            await client.start_workflow(
                run,
                id=workflow_id,
                task_queue=config.temporal.task_queue,
                cron_schedule=cron,
            )
            LOGGER.info("Started %s with cron %r", workflow_id, cron)
        except WorkflowAlreadyStartedError:
            LOGGER.info("%s already scheduled", workflow_id)


def build_worker(client: Client, config: AppConfig, services: Services) -> Worker:
    activities = SchedulerActivities(
        services.engine,
        services.briefing,
        services.notifier,
        services.clock,
    )
    return Worker(
        client,
        task_queue=config.temporal.task_queue,
        workflows=[ReminderTickWorkflow, DailyBriefingWorkflow],
        activities=[activities.run_reminder_tick, activities.send_daily_briefing],
    )


async def run_worker(config: AppConfig, services: Services, client: Client | None = None) -> None:
    client = client or await connect_temporal(config.temporal)
    await ensure_schedules(client, config)
    worker = build_worker(client, config, services)
    await worker.run()


async def run_standalone(config_path: str) -> None:
    config = load_settings(config_path)
    async with Bot(config.telegram.bot_token) as bot:
        services = build_services(config, bot)
        try:
            await run_worker(config, services)
        finally:
            await services.aclose()


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(description="Run the aide Temporal scheduler worker")
    parser.add_argument("--config", default="config/example.yaml")
    args = parser.parse_args()
    asyncio.run(run_standalone(args.config))


if __name__ == "__main__":
    main()
