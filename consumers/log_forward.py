"""Optional bridge from the logging system to the event bus.

Installing :class:`BusLogHandler` makes log records at or above its level
show up in the chat as ``log`` events, subject to the same mute gate as any
other notification.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from events.bus import EventBus
from events.models import BotEvent

# Loggers whose records would loop back into the chat or flood it.
IGNORED_LOGGERS = ("discord", "consumers.chat", "asyncio")


class BusLogHandler(logging.Handler):
    """Publishes log records onto an :class:`EventBus`."""

    def __init__(
        self,
        event_bus: EventBus,
        loop: asyncio.AbstractEventLoop,
        level: int = logging.WARNING,
    ) -> None:
        super().__init__(level=level)
        self._event_bus = event_bus
        self._loop = loop
        self.addFilter(self._accept)

    @staticmethod
    def _accept(record: logging.LogRecord) -> bool:
        return not any(
            record.name == name or record.name.startswith(name + ".")
            for name in IGNORED_LOGGERS
        )

    def emit(self, record: logging.LogRecord) -> None:
        try:
            event = BotEvent(
                kind="log",
                message=self.format(record),
                timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc),
                level=record.levelname,
            )
            if self._loop.is_closed():
                return
            if _running_loop() is self._loop:
                self._event_bus.publish_nowait(event)
            else:
                self._loop.call_soon_threadsafe(self._event_bus.publish_nowait, event)
        except Exception:  # noqa: BLE001
            self.handleError(record)


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def install(
    event_bus: EventBus, level_name: Optional[str], loop: asyncio.AbstractEventLoop
) -> Optional[BusLogHandler]:
    """Attach a :class:`BusLogHandler` to the root logger; ``None`` disables it."""
    if level_name is None:
        return None
    handler = BusLogHandler(event_bus, loop, level=logging.getLevelName(level_name.upper()))
    logging.getLogger().addHandler(handler)
    return handler
