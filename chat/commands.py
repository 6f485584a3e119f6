"""Chat command handling.

Commands are registered in a :class:`CommandRegistry` (name -> handler and
help text) so new ones can be added without touching the dispatcher.
:class:`CommandHandler` filters inbound messages to the configured channel,
ignores the bot's own messages, dispatches exact matches and occasionally
parrots anything else back as a text-to-speech message.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import timedelta
from typing import Awaitable, Callable, Iterator, Optional

from chat.gifs import GifProvider, send_gif
from chat.session import ChatSession, InboundMessage
from core.state import StateManager

logger = logging.getLogger(__name__)

STFU_DURATION = timedelta(minutes=30)


@dataclass
class CommandContext:
    """Everything a command handler may touch."""

    message: InboundMessage
    session: ChatSession
    state: StateManager
    gifs: Optional[GifProvider]
    request_shutdown: Callable[[], None]


CommandFunc = Callable[[CommandContext], Awaitable[None]]


@dataclass(frozen=True)
class Command:
    name: str
    handler: CommandFunc
    help: str = ""
    hidden: bool = False


class CommandRegistry:
    """Table of chat commands keyed by their literal trigger."""

    def __init__(self) -> None:
        self._commands: dict[str, Command] = {}

    def add(self, command: Command) -> None:
        if command.name in self._commands:
            raise ValueError(f"command {command.name!r} already registered")
        self._commands[command.name] = command

    def register(
        self, name: str, help: str = "", hidden: bool = False
    ) -> Callable[[CommandFunc], CommandFunc]:
        """Decorator form of :meth:`add`."""

        def decorator(func: CommandFunc) -> CommandFunc:
            self.add(Command(name=name, handler=func, help=help, hidden=hidden))
            return func

        return decorator

    def get(self, name: str) -> Optional[Command]:
        return self._commands.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._commands

    def __iter__(self) -> Iterator[Command]:
        return iter(self._commands.values())

    def help_text(self) -> str:
        lines = ["How to bot:"]
        lines.extend(f"{c.name} : {c.help}" for c in self if not c.hidden)
        return "\n".join(lines)


def default_registry() -> CommandRegistry:
    """Build the registry with the stock set of commands."""
    registry = CommandRegistry()

    @registry.register("!help", help="this message")
    async def _help(ctx: CommandContext) -> None:
        await ctx.session.send_text(registry.help_text())

    registry.add(Command("!status", _status, help="report last check, and status of inventory"))
    registry.add(Command("!terminate", _terminate, help="shuts down the bot, it's gone crazy"))
    registry.add(Command("!stfu", _stfu, help="stop checks for 30 minutes"))
    registry.add(Command("!exterminate", _exterminate, hidden=True))
    registry.add(Command("!firejeffbezosintothesun", _bezos, hidden=True))
    return registry


async def _status(ctx: CommandContext) -> None:
    state = ctx.state.snapshot()
    last = state.last_checked.isoformat() if state.last_checked else "never"
    lines = [
        f"Last: {last}",
        f"In Stock: {state.in_stock}",
        f"In Queue: {state.in_queue}",
        f"Checks: {state.checks}",
    ]
    if ctx.state.is_muted():
        lines.append(f"Muted until: {state.muted_until.isoformat()}")
    await ctx.session.send_text("\n".join(lines))


async def _stfu(ctx: CommandContext) -> None:
    await ctx.session.send_text(":face_with_symbols_over_mouth: NO U")
    until = await ctx.state.mute_for(STFU_DURATION)
    logger.info("Muted by command until %s", until.isoformat())


async def _exterminate(ctx: CommandContext) -> None:
    await ctx.session.send_tts("EXTERMINATE")
    await send_gif(ctx.session, ctx.gifs, "exterminate")


async def _bezos(ctx: CommandContext) -> None:
    await send_gif(ctx.session, ctx.gifs, "bezos")


async def _terminate(ctx: CommandContext) -> None:
    await ctx.session.send_text("My mind is going... I can feel it.")
    await send_gif(ctx.session, ctx.gifs, "hal9000")
    logger.info("Terminate requested by %s", ctx.message.author_id)
    await ctx.session.close()
    ctx.request_shutdown()


class CommandHandler:
    """Inbound message callback.

    Parameters
    ----------
    session:
        Where replies go.
    state_manager:
        Shared poll state (``!status``, ``!stfu``).
    channel_id:
        The only channel the bot listens to.
    bot_id:
        The bot's own user id; its messages are ignored.
    registry:
        Command table, :func:`default_registry` when omitted.
    gifs:
        Optional GIF provider for decorated replies.
    request_shutdown:
        Called by ``!terminate`` once the session is closed.
    echo_chance:
        Probability of repeating an unmatched message as TTS.
    rng:
        Random source for the echo decision.
    """

    def __init__(
        self,
        session: ChatSession,
        state_manager: StateManager,
        channel_id: int,
        bot_id: int = 0,
        registry: Optional[CommandRegistry] = None,
        gifs: Optional[GifProvider] = None,
        request_shutdown: Optional[Callable[[], None]] = None,
        echo_chance: float = 0.1,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._session = session
        self._state = state_manager
        self._channel_id = channel_id
        self._bot_id = bot_id
        self._registry = registry if registry is not None else default_registry()
        self._gifs = gifs
        self._request_shutdown = request_shutdown or (lambda: None)
        self._echo_chance = echo_chance
        self._rng = rng or random.Random()

    @property
    def registry(self) -> CommandRegistry:
        return self._registry

    def _is_self(self, author_id: int) -> bool:
        return author_id in {self._bot_id, self._session.user_id}

    async def handle(self, message: InboundMessage) -> bool:
        """Process *message*; return ``True`` when a command ran."""
        if self._is_self(message.author_id):
            return False
        if message.channel_id != self._channel_id:
            return False

        command = self._registry.get(message.content.strip())
        if command is None:
            if message.content and self._rng.random() < self._echo_chance:
                await self._session.send_tts(message.content)
            return False

        logger.debug("Running %s for %s", command.name, message.author_id)
        await command.handler(
            CommandContext(
                message=message,
                session=self._session,
                state=self._state,
                gifs=self._gifs,
                request_shutdown=self._request_shutdown,
            )
        )
        return True
