"""Async HTTP fetcher for the vendor endpoints.

Uses ``aiohttp`` for both calls a stock check makes: a GET on the product
page, used only for its status code (redirects are *not* followed, since a
3xx means the store is pushing visitors into its queue), and a GET on the
product-listing API, whose raw body is handed to the parser.
"""

from __future__ import annotations

import asyncio
import logging

import aiohttp

from core.errors import FetchError

logger = logging.getLogger(__name__)

DEFAULT_PRODUCT_URL = (
    "https://direct.playstation.com/en-us/consoles/console/playstation5-console.3005816"
)
LISTING_URL_TEMPLATE = (
    "https://api.direct.playstation.com/commercewebservices/ps-direct-us/users/"
    "anonymous/products/productList?fields=BASIC&productCodes={code}"
)

_DEFAULT_TIMEOUT = 30.0
_NO_CACHE_HEADERS = {
    "Upgrade-Insecure-Requests": "1",
    "Pragma": "no-cache",
    "Cache-Control": "no-cache",
}


def is_redirect(status_code: int) -> bool:
    """Return ``True`` for any 3xx status."""
    return 300 <= status_code < 400


class VendorFetcher:
    """Issues the two vendor requests a stock check needs.

    Parameters
    ----------
    session:
        A shared :class:`aiohttp.ClientSession` for connection pooling.
    listing_url:
        Format string with a ``{code}`` placeholder for the product code.
    timeout:
        Total per-request timeout in seconds.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        listing_url: str = LISTING_URL_TEMPLATE,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        self._session = session
        self._listing_url = listing_url
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def would_enqueue(self, url: str) -> bool:
        """Return ``True`` when *url* answers with a redirect.

        Raises :class:`FetchError` when the page cannot be reached at all.
        """
        try:
            async with self._session.get(
                url,
                headers=dict(_NO_CACHE_HEADERS),
                allow_redirects=False,
                timeout=self._timeout,
            ) as response:
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.error("Fetching %s: %s", url, exc)
            raise FetchError(f"product page unreachable: {exc}") from exc

        logger.debug("Product page %s answered %d", url, status)
        return is_redirect(status)

    async def fetch_listing(self, code: str) -> bytes:
        """Fetch the raw listing payload for product *code*."""
        url = self._listing_url.format(code=code)
        headers = {"Accept": "application/json", **_NO_CACHE_HEADERS}
        try:
            async with self._session.get(
                url, headers=headers, timeout=self._timeout
            ) as response:
                body = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.error("Fetching listing for %s: %s", code, exc)
            raise FetchError(f"listing unreachable: {exc}") from exc

        logger.debug(
            "Listing for %s: %d, received %d bytes", code, response.status, len(body)
        )
        return body
