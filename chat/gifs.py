"""Giphy lookup used to decorate announcements.

Every failure (no key, network, bad payload, no match) yields ``None`` and
the caller simply skips the decoration.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

import aiohttp

if TYPE_CHECKING:
    from chat.session import ChatSession

logger = logging.getLogger(__name__)

GIPHY_RANDOM_URL = "https://api.giphy.com/v1/gifs/random"
_REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=10)


class GifProvider:
    """Fetches one random GIF URL for a search term."""

    def __init__(self, session: aiohttp.ClientSession, api_key: Optional[str]) -> None:
        self._session = session
        self._api_key = api_key

    async def lookup(self, term: str) -> Optional[str]:
        """Return a GIF URL for *term*, or ``None``."""
        if not self._api_key:
            return None
        params = {"api_key": self._api_key, "tag": term}
        try:
            async with self._session.get(
                GIPHY_RANDOM_URL, params=params, timeout=_REQUEST_TIMEOUT
            ) as response:
                if response.status != 200:
                    logger.debug("Giphy answered %d for %r", response.status, term)
                    return None
                payload = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.debug("Giphy lookup for %r failed: %s", term, exc)
            return None

        # No match comes back as an empty list instead of an object.
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            return None
        return data.get("url") or None


async def send_gif(chat: ChatSession, gifs: Optional[GifProvider], term: str) -> bool:
    """Post a GIF for *term* to *chat*; return whether one was sent."""
    if gifs is None:
        return False
    url = await gifs.lookup(term)
    if url is None:
        return False
    await chat.send_text(url)
    return True
