from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Optional

EventKind = Literal[
    "enqueue", "left_queue", "in_stock", "out_of_stock", "tab_opened", "interval", "error", "log"
]


@dataclass(frozen=True)
class BotEvent:
    """A notification destined for the chat channel."""

    kind: EventKind
    message: str
    timestamp: datetime
    level: str = "INFO"
    gif_term: Optional[str] = None

    def formatted_output(self) -> str:
        """Return the line posted to chat, e.g. ``INFO: Seems to be available!``."""
        return f"{self.level}: {self.message}"

    def __str__(self) -> str:
        return self.formatted_output()
