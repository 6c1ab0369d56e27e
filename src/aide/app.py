from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging

from aide.config import load_settings
from aide.telegram.bot import TelegramBotApp
from aide.temporal import connect_temporal
from aide.worker import run_worker


async def run_app(config_path: str) -> None:
    config = load_settings(config_path)
    temporal_client = await connect_temporal(config.temporal)
    bot = TelegramBotApp.create(config)

    worker_task = asyncio.create_task(
        run_worker(config, bot.services, temporal_client),
        name="aide-worker",
    )
    try:
        await bot.run_forever()
    finally:
        worker_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await worker_task
        await bot.services.aclose()


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(description="Run aide bot + scheduler worker in one loop")
    parser.add_argument("--config", default="config/example.yaml")
    args = parser.parse_args()
    asyncio.run(run_app(args.config))


if __name__ == "__main__":
    main()
