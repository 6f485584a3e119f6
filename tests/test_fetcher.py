"""Tests for core.fetcher.VendorFetcher."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from core.errors import FetchError
from core.fetcher import VendorFetcher, is_redirect


def _make_mock_response(status: int = 200, body: bytes = b"{}") -> MagicMock:
    """Create a mock aiohttp response with async context manager support."""
    resp = MagicMock()
    resp.status = status
    resp.read = AsyncMock(return_value=body)
    return resp


def _make_mock_session(response: MagicMock) -> MagicMock:
    """Create a mock aiohttp.ClientSession whose .get() returns *response*."""
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=response)
    ctx.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.get = MagicMock(return_value=ctx)
    return session


def _make_failing_session(exc: Exception) -> MagicMock:
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(side_effect=exc)
    ctx.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.get = MagicMock(return_value=ctx)
    return session


@pytest.mark.parametrize("status", [300, 301, 302, 307, 399])
def test_is_redirect_true_for_3xx(status: int) -> None:
    assert is_redirect(status) is True


@pytest.mark.parametrize("status", [200, 204, 299, 400, 404, 503])
def test_is_redirect_false_otherwise(status: int) -> None:
    assert is_redirect(status) is False


@pytest.mark.asyncio
async def test_would_enqueue_true_on_302() -> None:
    session = _make_mock_session(_make_mock_response(status=302))
    fetcher = VendorFetcher(session=session)

    assert await fetcher.would_enqueue("https://shop.example.com/ps5") is True


@pytest.mark.asyncio
async def test_would_enqueue_false_on_200() -> None:
    session = _make_mock_session(_make_mock_response(status=200))
    fetcher = VendorFetcher(session=session)

    assert await fetcher.would_enqueue("https://shop.example.com/ps5") is False


@pytest.mark.asyncio
async def test_would_enqueue_does_not_follow_redirects() -> None:
    """The redirect itself is the signal, so it must not be followed."""
    session = _make_mock_session(_make_mock_response(status=302))
    fetcher = VendorFetcher(session=session)

    await fetcher.would_enqueue("https://shop.example.com/ps5")

    call_kwargs = session.get.call_args.kwargs
    assert call_kwargs["allow_redirects"] is False
    assert call_kwargs["headers"]["Cache-Control"] == "no-cache"


@pytest.mark.asyncio
async def test_would_enqueue_raises_fetch_error_on_network_failure() -> None:
    session = _make_failing_session(aiohttp.ClientConnectionError("boom"))
    fetcher = VendorFetcher(session=session)

    with pytest.raises(FetchError):
        await fetcher.would_enqueue("https://shop.example.com/ps5")


@pytest.mark.asyncio
async def test_fetch_listing_formats_url_and_returns_body() -> None:
    session = _make_mock_session(_make_mock_response(body=b'{"products": []}'))
    fetcher = VendorFetcher(
        session=session, listing_url="https://api.example.com/list?codes={code}"
    )

    body = await fetcher.fetch_listing("42")

    assert body == b'{"products": []}'
    url = session.get.call_args.args[0]
    assert url == "https://api.example.com/list?codes=42"
    headers = session.get.call_args.kwargs["headers"]
    assert headers["Accept"] == "application/json"


@pytest.mark.asyncio
async def test_fetch_listing_raises_fetch_error_on_timeout() -> None:
    session = _make_failing_session(asyncio.TimeoutError())
    fetcher = VendorFetcher(session=session)

    with pytest.raises(FetchError):
        await fetcher.fetch_listing("42")
