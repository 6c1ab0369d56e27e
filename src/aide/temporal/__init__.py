from __future__ import annotations

from temporalio.client import Client

from aide.config import TemporalConfig


async def connect_temporal(config: TemporalConfig) -> Client:
    return await Client.connect(config.address, namespace=config.namespace)
