"""Entry point for the stock watch bot.

Loads configuration, connects to Discord, wires up all components and runs
the polling loop until interrupted (SIGINT / SIGTERM) or told to
``!terminate`` from the channel.  Without a bot token the watcher runs
headless and prints its events to the console.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import Optional

import aiohttp
import discord

from chat.commands import CommandHandler
from chat.gifs import GifProvider, send_gif
from chat.session import ChatSession, DiscordSession
from consumers import log_forward
from consumers.chat import ChatConsumer
from consumers.console import ConsoleConsumer, Consumer
from core.checker import StockChecker
from core.config import WatcherConfig, load_config
from core.errors import ConfigError
from core.fetcher import VendorFetcher
from core.scheduler import PollScheduler
from core.state import StateManager
from events.bus import EventBus

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


class Shutdown:
    """Records why the bot is stopping; the first request wins."""

    def __init__(self) -> None:
        self.event = asyncio.Event()
        self.reason: Optional[str] = None

    def request(self, reason: str) -> None:
        if self.event.is_set():
            return
        self.reason = reason
        self.event.set()


async def _announce(session: Optional[ChatSession], gifs: GifProvider, text: str, term: str) -> None:
    logger.info(text)
    if session is None:
        return
    try:
        await session.send_text(text)
        await send_gif(session, gifs, term)
    except (discord.DiscordException, aiohttp.ClientError, OSError) as exc:
        logger.warning("Announcement failed: %s", exc)


async def run(config: WatcherConfig) -> int:
    event_bus = EventBus()
    state_manager = StateManager()
    shutdown = Shutdown()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, shutdown.request, "signal")

    async with aiohttp.ClientSession() as http:
        gifs = GifProvider(http, config.giphy_key)
        session: Optional[DiscordSession] = None
        consumer: Consumer

        if config.bot_token:
            session = DiscordSession(config.bot_token, config.channel)
            handler = CommandHandler(
                session=session,
                state_manager=state_manager,
                channel_id=config.channel,
                bot_id=config.bot_id,
                gifs=gifs,
                request_shutdown=lambda: shutdown.request("command"),
                echo_chance=config.echo_chance,
            )
            session.set_message_handler(handler.handle)
            session.set_disconnect_handler(lambda: shutdown.request("disconnect"))
            try:
                await session.connect()
            except (discord.DiscordException, aiohttp.ClientError, OSError, asyncio.TimeoutError) as exc:
                logger.error("Could not connect to Discord: %s", exc)
                await session.close()
                return 1
            consumer = ChatConsumer(event_bus, session, state_manager, gifs)
        else:
            logger.warning("DISCORD_BOT_TOKEN not set; running headless")
            consumer = ConsoleConsumer(event_bus)

        forwarder = log_forward.install(event_bus, config.forward_log_level, loop)

        fetcher = VendorFetcher(http, listing_url=config.listing_url, timeout=config.request_timeout)
        checker = StockChecker(
            fetcher=fetcher,
            state_manager=state_manager,
            event_bus=event_bus,
            product_url=config.product_url,
            product_code=config.product,
            block_status=config.block_status,
            notify=config.notify,
            open_browser=config.open_browser,
            debug_mode=config.debug_mode,
        )
        scheduler = PollScheduler(
            checker=checker,
            state_manager=state_manager,
            event_bus=event_bus,
            interval=config.interval,
            recheck_interval=config.recheck_interval,
            retry_attempts=config.retry_attempts,
            retry_wait_min=config.retry_wait_min,
            retry_wait_max=config.retry_wait_max,
            retry_on_fault=config.retry_on_fault,
        )

        consumer_task = asyncio.create_task(consumer.start(), name="event-consumer")
        await _announce(session, gifs, "Initializing", "start")
        if config.debug_mode:
            await _announce(session, gifs, "Debug mode: stock and queue edges are simulated", "testing")
        state_manager.release_startup_mute()
        await scheduler.start()

        logger.info("Watching product %s; press Ctrl+C to stop", config.product)
        await shutdown.event.wait()

        if shutdown.reason == "signal":
            await _announce(session, gifs, "Shutting down", "shut it down")
        await scheduler.stop()
        await consumer.stop()
        consumer_task.cancel()
        try:
            await consumer_task
        except asyncio.CancelledError:
            pass
        if forwarder is not None:
            logging.getLogger().removeHandler(forwarder)
        if session is not None:
            await session.close()

    logger.info("Goodbye")
    return 1 if shutdown.reason == "disconnect" else 0


def main() -> None:
    try:
        config = load_config()
    except ConfigError as exc:
        logger.error("Invalid configuration: %s", exc)
        sys.exit(1)
    logging.getLogger().setLevel(config.log_level.upper())
    sys.exit(asyncio.run(run(config)))


if __name__ == "__main__":
    main()
