"""The stock check: one pass over both vendor endpoints.

A check asks the product page whether it redirects (the store's queue is
up), pulls the listing to read the stock-level status, folds both booleans
into the shared :class:`~core.state.StateManager` and publishes a
:class:`~events.models.BotEvent` for every edge worth telling the channel
about.  Checks are safe to repeat: the only effects besides reading remote
state are flag updates and, on the enqueue edge, opening the product page.
"""

from __future__ import annotations

import asyncio
import logging
import webbrowser
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Optional

from core.errors import FetchError, SideEffectError
from core.fetcher import VendorFetcher
from core.parser import ProductListParser, ProductStatus
from core.state import StateManager, Transitions
from events.bus import EventBus
from events.models import BotEvent

logger = logging.getLogger(__name__)

SOFT_MUTE = timedelta(minutes=1)
_DEBUG_CYCLE = 30

Opener = Callable[[str], bool]


@dataclass
class CheckResult:
    """What a single check observed and changed."""

    would_enqueue: bool = False
    out_of_stock: bool = True
    status: Optional[ProductStatus] = None
    soft_muted: bool = False
    transitions: Transitions = field(default_factory=Transitions)


class StockChecker:
    """Runs the check operation against one product.

    Parameters
    ----------
    fetcher:
        Vendor HTTP access.
    state_manager:
        Shared poll state.
    event_bus:
        Where notifications are published.
    product_url:
        Product page; a redirect from it means the queue is up.
    product_code:
        Code queried on the listing API.
    block_status:
        Stock-level status string that means "not purchasable".
    notify:
        Mention prepended to the enqueue notification (e.g. ``@here``).
    open_browser:
        Whether the enqueue edge opens *product_url* locally.
    debug_mode:
        Simulate stock and queue edges from the check counter instead of
        reading them from the vendor.
    opener:
        Callable used to open the product page; defaults to
        :func:`webbrowser.open`.
    """

    def __init__(
        self,
        fetcher: VendorFetcher,
        state_manager: StateManager,
        event_bus: EventBus,
        product_url: str,
        product_code: str,
        block_status: str,
        notify: str = "",
        open_browser: bool = True,
        debug_mode: bool = False,
        opener: Opener = webbrowser.open,
    ) -> None:
        self._fetcher = fetcher
        self._state = state_manager
        self._event_bus = event_bus
        self._parser = ProductListParser()
        self._product_url = product_url
        self._product_code = product_code
        self._block_status = block_status
        self._notify = notify
        self._open_browser = open_browser
        self._debug_mode = debug_mode
        self._opener = opener

    async def check(self) -> CheckResult:
        """Run one full check.

        Raises a :class:`~core.errors.CheckError` subclass when the listing
        cannot be fetched or parsed, or when opening the product page fails.
        """
        logger.debug("Iteration %d", self._state.snapshot().checks)

        try:
            redirected = await self._fetcher.would_enqueue(self._product_url)
        except FetchError as exc:
            logger.debug("Product page check failed, backing off: %s", exc)
            await self._state.mute_for(SOFT_MUTE)
            return CheckResult(soft_muted=True)
        logger.debug("redirect val %s", redirected)

        payload = await self._fetcher.fetch_listing(self._product_code)
        response = self._parser.parse(payload)

        if not response.products:
            logger.debug("Listing for %s is empty, backing off", self._product_code)
            await self._state.mute_for(SOFT_MUTE)
            return CheckResult(would_enqueue=redirected, soft_muted=True)

        status = ProductStatus.from_product(response.products[0])
        logger.debug("Stock level %s", status.stock_level_status)

        if self._debug_mode:
            out_of_stock, redirected = self._simulate()
        else:
            out_of_stock = status.stock_level_status == self._block_status

        logger.debug("OOS: %s REDIR: %s", out_of_stock, redirected)
        transitions = await self._state.apply_check(redirected, out_of_stock)
        await self._announce(transitions, status)

        return CheckResult(
            would_enqueue=redirected,
            out_of_stock=out_of_stock,
            status=status,
            transitions=transitions,
        )

    def _simulate(self) -> tuple[bool, bool]:
        phase = self._state.snapshot().checks % _DEBUG_CYCLE
        return (phase < 10 or phase > 15), (5 < phase < 20)

    async def _announce(self, transitions: Transitions, status: ProductStatus) -> None:
        if transitions.entered_queue:
            message = (
                f"{self._notify} Got status {status.stock_level_status}. It's go time! "
                f"Click me if you want to try! {self._product_url}"
            ).strip()
            logger.info("Queue is up for %s", status.product_code)
            await self._publish("enqueue", message, gif_term="lets do this")
        elif transitions.left_queue:
            logger.info("No longer doing redirect")
            await self._publish("left_queue", "No longer doing redirect")

        if transitions.went_out_of_stock:
            logger.info("Out of stock again")
            await self._publish("out_of_stock", "Poo!  Looks like it's gone")
        elif transitions.came_in_stock:
            logger.info("Back in stock")
            await self._publish("in_stock", "Seems to be available!")

        if transitions.entered_queue and self._open_browser:
            await self._open_product_page()

    async def _open_product_page(self) -> None:
        # in_queue is already set, so a retried check sees no enqueue edge
        # and neither re-announces nor reopens.
        try:
            opened = await asyncio.to_thread(self._opener, self._product_url)
        except (webbrowser.Error, OSError) as exc:
            opened = False
            logger.error("Couldn't open a tab: %s", exc)
        if not opened:
            raise SideEffectError(f"could not open {self._product_url}")
        logger.info("Opened a tab!")
        await self._publish("tab_opened", "Opened a tab!")

    async def _publish(self, kind: str, message: str, gif_term: Optional[str] = None) -> None:
        event = BotEvent(
            kind=kind,  # type: ignore[arg-type]
            message=message,
            timestamp=self._state.now(),
            gif_term=gif_term,
        )
        await self._event_bus.publish(event)
