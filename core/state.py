"""In-memory poll state shared by the scheduler and the command handler.

A single :class:`PollState` lives for the whole process.  The poll task and
the chat command callback both run on the event loop, so every mutation
goes through :class:`StateManager` under one :class:`asyncio.Lock`.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass
class PollState:
    """Mutable watcher state."""

    muted_until: datetime
    in_stock: bool = False
    in_queue: bool = False
    checks: int = 0
    last_checked: Optional[datetime] = None

    @property
    def active(self) -> bool:
        """``True`` while the product is in stock or the queue is up."""
        return self.in_stock or self.in_queue


@dataclass(frozen=True)
class Transitions:
    """Flag edges produced by one check."""

    entered_queue: bool = False
    left_queue: bool = False
    came_in_stock: bool = False
    went_out_of_stock: bool = False

    def __bool__(self) -> bool:
        return (
            self.entered_queue
            or self.left_queue
            or self.came_in_stock
            or self.went_out_of_stock
        )


class StateManager:
    """Owner of the single :class:`PollState`.

    ``muted_until`` only ever moves forward.  :meth:`release_startup_mute`
    is the one exception and takes effect a single time.
    """

    def __init__(self, clock: Clock = utcnow) -> None:
        self._clock = clock
        self._state = PollState(muted_until=clock())
        self._lock = asyncio.Lock()
        self._startup_released = False

    @property
    def lock(self) -> asyncio.Lock:
        return self._lock

    def now(self) -> datetime:
        return self._clock()

    def snapshot(self) -> PollState:
        """Return a detached copy of the current state."""
        return dataclasses.replace(self._state)

    def is_muted(self) -> bool:
        return self._clock() < self._state.muted_until

    def should_announce(self) -> bool:
        """Whether chat output may go out right now.

        Being in stock overrides the mute so availability is never silenced.
        """
        return self._clock() > self._state.muted_until or self._state.in_stock

    async def mute_for(self, duration: timedelta) -> datetime:
        """Extend the mute to ``now + duration`` and return the effective deadline."""
        async with self._lock:
            return self._extend_mute(duration)

    def _extend_mute(self, duration: timedelta) -> datetime:
        candidate = self._clock() + duration
        if candidate > self._state.muted_until:
            self._state.muted_until = candidate
            logger.debug("Muted until %s", candidate.isoformat())
        return self._state.muted_until

    def release_startup_mute(self) -> None:
        """Reset the mute to now, once, right after the startup announcement."""
        if self._startup_released:
            logger.warning("Startup mute already released; ignoring")
            return
        self._startup_released = True
        self._state.muted_until = self._clock()

    async def apply_check(self, would_enqueue: bool, out_of_stock: bool) -> Transitions:
        """Fold one check's booleans into the state and return the edges."""
        async with self._lock:
            state = self._state
            transitions = Transitions(
                entered_queue=would_enqueue and not state.in_queue,
                left_queue=not would_enqueue and state.in_queue,
                came_in_stock=not out_of_stock and not state.in_stock,
                went_out_of_stock=out_of_stock and state.in_stock,
            )
            state.in_queue = would_enqueue
            state.in_stock = not out_of_stock
            state.checks += 1
            state.last_checked = self._clock()
            return transitions
