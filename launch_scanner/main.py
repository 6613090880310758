import asyncio
import logging
from dataclasses import dataclass

import httpx
import uvicorn

from launch_scanner.chains.base import ChainClient, ChainFamily, create_chain_client
from launch_scanner.config import settings
from launch_scanner.delivery.telegram_bot import TelegramNotifier
from launch_scanner.delivery.invalidation import ViewInvalidator
from launch_scanner.delivery.web.app import create_app
from launch_scanner.ingestion.gateway import UpsertGateway
from launch_scanner.ingestion.listener import LaunchpadListener
from launch_scanner.launchpads.virtuals.client import VirtualsClient
from launch_scanner.launchpads.virtuals.normalizer import VirtualsNormalizer
from launch_scanner.storage.database import async_session, init_db
from launch_scanner.utils.logging import setup_logging

logger = logging.getLogger(__name__)


@dataclass
class Pipeline:
    gateway: UpsertGateway
    listeners: dict[str, LaunchpadListener]


def build_pipeline(client: httpx.AsyncClient) -> Pipeline:
    """Wire chain adapters, gateway and one listener per launchpad around a shared HTTP client."""
    chains: dict[ChainFamily, ChainClient] = {
        family: create_chain_client(family, client) for family in ChainFamily
    }

    notifier: TelegramNotifier | None = None
    if settings.notifications_enabled and settings.telegram_bot_token and settings.telegram_chat_id:
        notifier = TelegramNotifier()
        logger.info("Telegram notifications enabled")
    else:
        logger.info("Telegram not configured, launches will only be stored in DB")

    invalidator = ViewInvalidator(client, local_views=settings.web_enabled)
    gateway = UpsertGateway(
        async_session,
        notifier=notifier,
        invalidator=invalidator,
        chains=chains,
    )

    source = VirtualsClient(client)
    listener = LaunchpadListener(
        source,
        VirtualsNormalizer(chains, client),
        gateway,
        async_session,
        interval_seconds=settings.virtuals_poll_interval_seconds,
    )
    return Pipeline(gateway=gateway, listeners={listener.name: listener})


async def main() -> None:
    setup_logging()
    logger.info("Starting Launch Scanner")

    await init_db()
    logger.info("Database initialized")

    async with httpx.AsyncClient(follow_redirects=True) as client:
        pipeline = build_pipeline(client)

        if settings.debug_launch_id:
            for listener in pipeline.listeners.values():
                result = await listener.debug_launch(
                    settings.debug_launch_id, delete_existing=settings.debug_delete_existing,
                )
                logger.info("Debug launch %s: %s", settings.debug_launch_id, result.message)

        started: list[LaunchpadListener] = []
        if settings.virtuals_listener_enabled:
            for listener in pipeline.listeners.values():
                listener.start()
                started.append(listener)
        else:
            logger.info("Virtuals listener disabled, set VIRTUALS_LISTENER_ENABLED=true")

        try:
            if settings.web_enabled:
                app = create_app(async_session, pipeline.gateway, pipeline.listeners)
                config = uvicorn.Config(
                    app,
                    host=settings.web_host,
                    port=settings.web_port,
                    log_level="info",
                )
                await uvicorn.Server(config).serve()
            elif started:
                await asyncio.gather(*(listener.wait() for listener in started))
        finally:
            for listener in started:
                await listener.stop()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
