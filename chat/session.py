"""Chat platform session.

:class:`ChatSession` is the narrow surface the rest of the bot uses: send a
message, send a text-to-speech message, close.  :class:`DiscordSession`
implements it on top of ``discord.py`` and turns every inbound message into
an :class:`InboundMessage` for the command handler.
"""

from __future__ import annotations

import abc
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import aiohttp
import discord
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 2000
_CONNECT_ATTEMPTS = 5
_READY_TIMEOUT = 60.0


@dataclass(frozen=True)
class InboundMessage:
    """Platform-neutral view of a received chat message."""

    author_id: int
    channel_id: int
    content: str


MessageCallback = Callable[[InboundMessage], Awaitable[None]]
DisconnectCallback = Callable[[], None]


class ChatSession(abc.ABC):
    """A connection to one chat channel."""

    @property
    def user_id(self) -> Optional[int]:
        """The bot's own user id once connected, if the platform reports it."""
        return None

    @abc.abstractmethod
    async def send_text(self, text: str) -> None:
        """Post *text* to the channel."""

    @abc.abstractmethod
    async def send_tts(self, text: str) -> None:
        """Post *text* to the channel as a text-to-speech message."""

    @abc.abstractmethod
    async def close(self) -> None:
        """Close the connection.  Safe to call more than once."""


class DiscordSession(ChatSession):
    """Discord bot session scoped to a single channel.

    Parameters
    ----------
    token:
        Bot token.
    channel_id:
        Channel all output goes to.
    """

    def __init__(self, token: str, channel_id: int) -> None:
        intents = discord.Intents.default()
        intents.message_content = True
        self._client = discord.Client(intents=intents)
        self._token = token
        self._channel_id = channel_id
        self._on_message: Optional[MessageCallback] = None
        self._on_disconnect: Optional[DisconnectCallback] = None
        self._gateway_task: Optional[asyncio.Task[None]] = None
        self._closed = False

        @self._client.event
        async def on_message(message: discord.Message) -> None:
            await self._dispatch(message)

    @property
    def user_id(self) -> Optional[int]:
        user = self._client.user
        return user.id if user is not None else None

    def set_message_handler(self, callback: MessageCallback) -> None:
        self._on_message = callback

    def set_disconnect_handler(self, callback: DisconnectCallback) -> None:
        """Call *callback* if the gateway stops while the session is open."""
        self._on_disconnect = callback

    async def connect(self, ready_timeout: float = _READY_TIMEOUT) -> None:
        """Log in and wait until the gateway reports ready.

        Transient network failures during login are retried with exponential
        backoff; a rejected token (:class:`discord.LoginFailure`) is not.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(_CONNECT_ATTEMPTS),
            wait=wait_exponential(min=1, max=30),
            retry=retry_if_exception_type(
                (aiohttp.ClientError, discord.GatewayNotFound, OSError)
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                await self._client.login(self._token)

        self._gateway_task = asyncio.create_task(
            self._client.connect(reconnect=True), name="discord-gateway"
        )
        ready_task = asyncio.create_task(self._client.wait_until_ready())
        done, _ = await asyncio.wait(
            {ready_task, self._gateway_task},
            timeout=ready_timeout,
            return_when=asyncio.FIRST_COMPLETED,
        )
        if ready_task not in done:
            ready_task.cancel()
            if self._gateway_task in done:
                # Re-raises whatever stopped the gateway.
                self._gateway_task.result()
            raise asyncio.TimeoutError("Discord gateway did not become ready")
        self._gateway_task.add_done_callback(self._gateway_done)
        logger.info("Connected to Discord as %s", self._client.user)

    async def send_text(self, text: str) -> None:
        channel = await self._channel()
        await channel.send(text[:MAX_MESSAGE_LENGTH])

    async def send_tts(self, text: str) -> None:
        channel = await self._channel()
        await channel.send(text[:MAX_MESSAGE_LENGTH], tts=True)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._client.close()
        if self._gateway_task is not None:
            try:
                await self._gateway_task
            except (asyncio.CancelledError, discord.DiscordException) as exc:
                logger.debug("Gateway task ended with %r", exc)
        logger.info("Discord session closed")

    async def _channel(self) -> discord.abc.Messageable:
        channel = self._client.get_channel(self._channel_id)
        if channel is None:
            channel = await self._client.fetch_channel(self._channel_id)
        return channel  # type: ignore[return-value]

    def _gateway_done(self, task: asyncio.Task[None]) -> None:
        if self._closed:
            return
        if task.cancelled():
            logger.error("Discord gateway task was cancelled")
        elif task.exception() is not None:
            logger.error("Discord gateway stopped: %s", task.exception())
        else:
            logger.error("Discord gateway exited")
        if self._on_disconnect is not None:
            self._on_disconnect()

    async def _dispatch(self, message: discord.Message) -> None:
        if self._on_message is None:
            return
        await self._on_message(
            InboundMessage(
                author_id=message.author.id,
                channel_id=message.channel.id,
                content=message.content,
            )
        )
