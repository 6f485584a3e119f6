"""Chat consumer: relays bot events into the chat channel through the mute gate."""

from __future__ import annotations

import logging
from typing import Optional

import aiohttp
import discord

from chat.gifs import GifProvider, send_gif
from chat.session import ChatSession
from consumers.console import Consumer
from core.state import StateManager
from events.bus import EventBus
from events.models import BotEvent

logger = logging.getLogger(__name__)


class ChatConsumer(Consumer):
    """Posts every event to the chat unless the bot is muted.

    The gate is :meth:`StateManager.should_announce`: output flows when the
    mute has expired or the product is in stock.
    """

    def __init__(
        self,
        event_bus: EventBus,
        session: ChatSession,
        state_manager: StateManager,
        gifs: Optional[GifProvider] = None,
    ) -> None:
        self._event_bus = event_bus
        self._session = session
        self._state = state_manager
        self._gifs = gifs
        self._running = False
        self.sent = 0
        self.dropped = 0

    async def start(self) -> None:
        self._running = True
        logger.info("ChatConsumer started")
        async for event in self._event_bus.subscribe():
            if not self._running:
                break
            await self.relay(event)
        logger.info("ChatConsumer stopped")

    async def stop(self) -> None:
        self._running = False

    async def relay(self, event: BotEvent) -> bool:
        """Send *event* if the gate allows it; return whether it went out."""
        if not self._state.should_announce():
            self.dropped += 1
            logger.debug("Muted; dropping %s event", event.kind)
            return False
        try:
            await self._session.send_text(event.formatted_output())
            if event.gif_term:
                await send_gif(self._session, self._gifs, event.gif_term)
        except (discord.DiscordException, aiohttp.ClientError, OSError) as exc:
            # Not forwarded to chat: see BusLogHandler's ignore list.
            logger.warning("Could not relay %s event: %s", event.kind, exc)
            return False
        self.sent += 1
        return True
