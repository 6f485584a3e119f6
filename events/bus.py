"""In-process fan-out of :class:`~events.models.BotEvent` notifications.

The checker, the scheduler and the log bridge publish; the chat or console
consumer subscribes.  Each subscription owns an unbounded queue, so a slow
Discord send never blocks the poll loop.
"""

from __future__ import annotations

import asyncio
from typing import AsyncGenerator

from events.models import BotEvent


class EventBus:
    """Delivers every published event to every live subscription."""

    def __init__(self) -> None:
        self._queues: list[asyncio.Queue[BotEvent]] = []
        self._lock = asyncio.Lock()

    async def publish(self, event: BotEvent) -> None:
        async with self._lock:
            self._fan_out(event)

    def publish_nowait(self, event: BotEvent) -> None:
        """Publish from synchronous code on the loop thread (e.g. a log handler)."""
        self._fan_out(event)

    async def subscribe(self) -> AsyncGenerator[BotEvent, None]:
        """Yield events published after this call, in publish order.

        The subscription is dropped when the generator is closed.
        """
        inbox: asyncio.Queue[BotEvent] = asyncio.Queue()
        async with self._lock:
            self._queues.append(inbox)
        try:
            while True:
                yield await inbox.get()
        finally:
            async with self._lock:
                self._queues.remove(inbox)

    def size(self) -> int:
        """Number of live subscriptions."""
        return len(self._queues)

    def _fan_out(self, event: BotEvent) -> None:
        for inbox in tuple(self._queues):
            inbox.put_nowait(event)
