"""Console consumer: prints bot events to stdout."""

from __future__ import annotations

import abc
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from events.bus import EventBus
    from events.models import BotEvent

logger = logging.getLogger(__name__)


class Consumer(abc.ABC):
    """Abstract base class that every event consumer must implement."""

    @abc.abstractmethod
    async def start(self) -> None:
        """Begin consuming events.  Runs until :meth:`stop` is called."""

    @abc.abstractmethod
    async def stop(self) -> None:
        """Signal the consumer to shut down gracefully."""


class ConsoleConsumer(Consumer):
    """Subscribes to an :class:`EventBus` and prints each event to stdout.

    Used when no chat credentials are configured, so the watcher can run
    headless.
    """

    _SEPARATOR = "-" * 40

    def __init__(self, event_bus: EventBus) -> None:
        self._event_bus = event_bus
        self._running: bool = False

    async def start(self) -> None:
        """Subscribe to the event bus and print events until stopped."""
        self._running = True
        logger.info("ConsoleConsumer started, waiting for events")

        async for event in self._event_bus.subscribe():
            if not self._running:
                break
            print(self._format_event(event))

        logger.info("ConsoleConsumer stopped")

    async def stop(self) -> None:
        """Signal the consumer loop to exit after the current event."""
        logger.info("ConsoleConsumer stopping")
        self._running = False

    @staticmethod
    def _format_event(event: BotEvent) -> str:
        """Return a human-readable block for *event*.

        Example output::

            [2025-06-15 10:30:00] [IN_STOCK] INFO: Seems to be available!
            ----------------------------------------
        """
        ts = event.timestamp.strftime("%Y-%m-%d %H:%M:%S")
        lines = [f"[{ts}] [{event.kind.upper()}] {event.formatted_output()}"]
        if event.gif_term:
            lines.append(f"(gif: {event.gif_term})")
        lines.append(ConsoleConsumer._SEPARATOR)
        return "\n".join(lines)
