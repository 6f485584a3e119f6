"""Tests for the console and chat consumers and the Consumer ABC."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from consumers.chat import ChatConsumer
from consumers.console import Consumer, ConsoleConsumer
from core.state import StateManager
from events.bus import EventBus
from events.models import BotEvent


def _make_event(kind: str = "in_stock", gif_term: str | None = None) -> BotEvent:
    return BotEvent(
        kind=kind,  # type: ignore[arg-type]
        message="Seems to be available!",
        timestamp=datetime(2025, 6, 15, 10, 30, 0, tzinfo=timezone.utc),
        gif_term=gif_term,
    )


class TestConsoleConsumerFormatEvent:
    """Verify _format_event output."""

    def test_format_event(self) -> None:
        output = ConsoleConsumer._format_event(_make_event())

        assert "[2025-06-15 10:30:00]" in output
        assert "[IN_STOCK]" in output
        assert "INFO: Seems to be available!" in output
        assert output.endswith("-" * 40)

    def test_format_event_with_gif(self) -> None:
        output = ConsoleConsumer._format_event(_make_event(kind="enqueue", gif_term="lets do this"))
        assert "[ENQUEUE]" in output
        assert "(gif: lets do this)" in output


class TestConsumerABCCannotBeInstantiated:
    def test_cannot_instantiate_consumer_abc(self) -> None:
        with pytest.raises(TypeError):
            Consumer()  # type: ignore[abstract]


class TestChatConsumerGate:
    @pytest.mark.asyncio
    async def test_relays_when_unmuted(self, chat_session, state_manager: StateManager, clock) -> None:
        clock.advance(seconds=1)
        consumer = ChatConsumer(EventBus(), chat_session, state_manager)

        assert await consumer.relay(_make_event()) is True
        chat_session.send_text.assert_awaited_once_with("INFO: Seems to be available!")

    @pytest.mark.asyncio
    async def test_drops_when_muted(self, chat_session, state_manager: StateManager) -> None:
        await state_manager.mute_for(timedelta(minutes=30))
        consumer = ChatConsumer(EventBus(), chat_session, state_manager)

        assert await consumer.relay(_make_event()) is False
        chat_session.send_text.assert_not_called()
        assert consumer.dropped == 1

    @pytest.mark.asyncio
    async def test_in_stock_overrides_mute(self, chat_session, state_manager: StateManager) -> None:
        await state_manager.apply_check(would_enqueue=False, out_of_stock=False)
        await state_manager.mute_for(timedelta(minutes=30))
        consumer = ChatConsumer(EventBus(), chat_session, state_manager)

        assert await consumer.relay(_make_event()) is True

    @pytest.mark.asyncio
    async def test_sends_gif_after_message(self, chat_session, state_manager: StateManager, clock) -> None:
        clock.advance(seconds=1)
        gifs = MagicMock()
        gifs.lookup = AsyncMock(return_value="https://media.example.com/go.gif")
        consumer = ChatConsumer(EventBus(), chat_session, state_manager, gifs)

        await consumer.relay(_make_event(kind="enqueue", gif_term="lets do this"))

        sent = [call.args[0] for call in chat_session.send_text.await_args_list]
        assert sent == ["INFO: Seems to be available!", "https://media.example.com/go.gif"]

    @pytest.mark.asyncio
    async def test_send_failure_is_logged_not_raised(self, chat_session, state_manager: StateManager, clock) -> None:
        clock.advance(seconds=1)
        chat_session.send_text.side_effect = discord.DiscordException("gateway down")
        consumer = ChatConsumer(EventBus(), chat_session, state_manager)

        assert await consumer.relay(_make_event()) is False
        assert consumer.sent == 0
