"""Shared fixtures for the stock watch bot test suite."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.state import StateManager
from events.bus import EventBus
from events.models import BotEvent


class FakeClock:
    """Controllable replacement for ``datetime.now``."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def listing_json(status: str = "outOfStock", code: str = "3005816", products: int = 1) -> bytes:
    """Build a listing payload shaped like the vendor's JSON response."""
    items = [
        {
            "baseProduct": "ps5",
            "code": code,
            "name": "PlayStation 5 Console",
            "url": "/en-us/consoles/console/playstation5-console.3005816",
            "price": {
                "basePrice": "$499.99",
                "currencyIso": "USD",
                "currencySymbol": "$",
                "decimalPrice": "499.99",
                "value": 499.99,
            },
            "stock": {"stockLevelStatus": status},
            "releaseDateDisplay": "11/12/2020",
            "streetDate": "2020-11-12T05:00:00Z",
            "purchasable": True,
            "preOrderProduct": False,
            "maxOrderQuantity": 1,
        }
        for _ in range(products)
    ]
    return json.dumps(
        {
            "currentPage": 0,
            "totalPageCount": 1,
            "totalProductCount": products,
            "products": items,
        }
    ).encode()


LISTING_XML = b"""\
<?xml version="1.0" encoding="UTF-8"?>
<productList>
  <currentPage>0</currentPage>
  <totalPageCount>1</totalPageCount>
  <totalProductCount>1</totalProductCount>
  <products>
    <baseProduct>ps5</baseProduct>
    <code>3005816</code>
    <name>PlayStation 5 Console</name>
    <url>/en-us/consoles/console/playstation5-console.3005816</url>
    <price>
      <basePrice>$499.99</basePrice>
      <currencyIso>USD</currencyIso>
      <currencySymbol>$</currencySymbol>
      <decimalPrice>499.99</decimalPrice>
      <value>499.99</value>
    </price>
    <stock>
      <stockLevelStatus>outOfStock</stockLevelStatus>
    </stock>
    <releaseDateDisplay>11/12/2020</releaseDateDisplay>
    <streetDate>2020-11-12T05:00:00Z</streetDate>
    <purchasable>true</purchasable>
    <preOrderProduct>false</preOrderProduct>
    <maxOrderQuantity>1</maxOrderQuantity>
  </products>
</productList>
"""


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 6, 15, 10, 30, 0, tzinfo=timezone.utc))


@pytest.fixture
def state_manager(clock: FakeClock) -> StateManager:
    return StateManager(clock=clock)


@pytest.fixture
def event_bus() -> EventBus:
    """Return a fresh EventBus instance."""
    return EventBus()


@pytest.fixture
def sample_bot_event() -> BotEvent:
    """Return a realistic BotEvent for use in tests."""
    return BotEvent(
        kind="in_stock",
        message="Seems to be available!",
        timestamp=datetime(2025, 6, 15, 10, 30, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def chat_session() -> MagicMock:
    """A ChatSession double recording what was sent."""
    session = MagicMock()
    session.user_id = 999
    session.send_text = AsyncMock()
    session.send_tts = AsyncMock()
    session.close = AsyncMock()
    return session
