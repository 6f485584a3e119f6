"""Poll scheduler: one asyncio task that ticks the stock check.

Each tick: skip if muted -> check (with bounded exponential retry) ->
compare flags before and after -> pick the next interval.  The loop runs
until :meth:`PollScheduler.stop` cancels it; check failures never escape it.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from core.checker import StockChecker
from core.errors import CheckError
from core.state import PollState, StateManager
from events.bus import EventBus
from events.models import BotEvent

logger = logging.getLogger(__name__)


@dataclass
class TickOutcome:
    """Result of one scheduler tick.

    ``error`` is the last ordinary check failure after retries ran out;
    ``fault`` is an unexpected exception that was caught and absorbed.
    """

    skipped: bool = False
    error: Optional[BaseException] = None
    fault: Optional[BaseException] = None
    interval_changed: bool = False


class PollScheduler:
    """Drives :class:`StockChecker` on an adaptive interval.

    Parameters
    ----------
    checker:
        The check operation to run every tick.
    state_manager:
        Shared poll state, read for the mute gate and flag edges.
    event_bus:
        Receives an ``error`` event when a tick gives up and an ``interval``
        event whenever the polling pace changes.
    interval:
        Seconds between ticks while nothing is happening.
    recheck_interval:
        Seconds between ticks while in stock or queued.
    retry_attempts:
        Maximum check attempts per tick.
    retry_wait_min, retry_wait_max:
        Bounds of the exponential wait between attempts, in seconds.
    retry_on_fault:
        Also retry unexpected exceptions instead of absorbing them.
    """

    def __init__(
        self,
        checker: StockChecker,
        state_manager: StateManager,
        event_bus: EventBus,
        interval: float,
        recheck_interval: float,
        retry_attempts: int = 5,
        retry_wait_min: float = 1.0,
        retry_wait_max: float = 30.0,
        retry_on_fault: bool = False,
    ) -> None:
        self._checker = checker
        self._state = state_manager
        self._event_bus = event_bus
        self._interval = interval
        self._recheck_interval = recheck_interval
        self._current_interval = interval
        self._retry_attempts = retry_attempts
        self._retry_wait_min = retry_wait_min
        self._retry_wait_max = retry_wait_max
        self._retry_on_fault = retry_on_fault
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def current_interval(self) -> float:
        return self._current_interval

    async def start(self) -> None:
        """Spawn the polling task."""
        self._task = asyncio.create_task(self._poll_loop(), name="poll-loop")
        logger.info(
            "Started polling (interval=%ss, recheck=%ss)",
            self._interval,
            self._recheck_interval,
        )

    async def stop(self) -> None:
        """Cancel the polling task and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Polling stopped")

    async def tick(self) -> TickOutcome:
        """Run one tick and return what happened."""
        if self._state.is_muted():
            logger.debug("Muted; skipping check")
            return TickOutcome(skipped=True)

        before = self._state.snapshot()
        outcome = TickOutcome()
        try:
            await self._check_with_retry()
        except CheckError as exc:
            outcome.error = exc
            logger.error("Check failed after %d attempt(s): %s", self._retry_attempts, exc)
            await self._event_bus.publish(
                BotEvent(
                    kind="error",
                    message=f"Check keeps failing: {exc}",
                    timestamp=self._state.now(),
                    level="ERROR",
                )
            )
        except Exception as exc:  # noqa: BLE001
            outcome.fault = exc
            logger.exception("OOPS! It exploded! %s", exc)

        outcome.interval_changed = await self._adjust_interval(before, self._state.snapshot())
        return outcome

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self._current_interval)
            try:
                await self.tick()
            except asyncio.CancelledError:
                logger.info("Polling task cancelled")
                raise
            except Exception:
                logger.exception("Unexpected error in poll loop")

    async def _check_with_retry(self) -> None:
        retryable = Exception if self._retry_on_fault else CheckError
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(min=self._retry_wait_min, max=self._retry_wait_max),
            retry=retry_if_exception_type(retryable),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                await self._checker.check()

    async def _adjust_interval(self, before: PollState, after: PollState) -> bool:
        if after.active and not before.active:
            message, self._current_interval = "In queue, slowing down", self._recheck_interval
        elif before.active and not after.active:
            message, self._current_interval = "Gone again, speeding up", self._interval
        else:
            return False
        logger.info("%s (next check in %ss)", message, self._current_interval)
        await self._event_bus.publish(
            BotEvent(kind="interval", message=message, timestamp=self._state.now())
        )
        return True
