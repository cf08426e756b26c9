"""
Tests for bot resolution against the data store.
"""

from datetime import datetime, timedelta, timezone

import pytest

from medvoice.infrastructure.store import InMemoryStore
from medvoice.webhook.bot_resolver import BotResolver, ResolvedBot, UnknownBot

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _store() -> InMemoryStore:
    store = InMemoryStore()
    store.add_bot(uid="bot_abc123", name="Sarah Medical Assistant", created_at=T0)
    store.add_bot(uid="bot_def456", name="Sarah Reminder Line", created_at=T0 + timedelta(days=1))
    store.add_bot(uid="bot_ghi789", name="Max Intake", created_at=T0 + timedelta(days=2))
    return store


class TestBotResolver:

    @pytest.mark.asyncio
    async def test_exact_uid(self):
        result = await BotResolver(_store()).resolve(identifier="bot_abc123")
        assert isinstance(result, ResolvedBot)
        assert result.strategy == "uid"
        assert result.name == "Sarah Medical Assistant"

    @pytest.mark.asyncio
    async def test_identifier_matches_name(self):
        result = await BotResolver(_store()).resolve(identifier="max")
        assert result.strategy == "name_like"
        assert result.bot.uid == "bot_ghi789"

    @pytest.mark.asyncio
    async def test_name_like_picks_newest(self):
        result = await BotResolver(_store()).resolve(identifier="sarah")
        assert result.bot.uid == "bot_def456"

    @pytest.mark.asyncio
    async def test_name_hint(self):
        result = await BotResolver(_store()).resolve(identifier="unknown-id", name_hint="Intake")
        assert result.strategy == "name_hint"
        assert result.bot.uid == "bot_ghi789"

    @pytest.mark.asyncio
    async def test_summary_extraction(self):
        result = await BotResolver(_store()).resolve(summary="The agent (Max) booked a slot.")
        assert result.strategy == "summary"
        assert result.bot.uid == "bot_ghi789"

    @pytest.mark.asyncio
    async def test_summary_ignored_when_name_hint_given(self):
        result = await BotResolver(_store()).resolve(
            name_hint="Nobody", summary="The agent (Max) booked a slot."
        )
        assert isinstance(result, UnknownBot)
        assert result.name == "Nobody"

    @pytest.mark.asyncio
    async def test_unmatched_identifier_is_unknown_bot(self):
        result = await BotResolver(_store()).resolve(identifier="bot_zzz")
        assert isinstance(result, UnknownBot)
        assert result.bot_id is None
        assert result.identifier == "bot_zzz"

    @pytest.mark.asyncio
    async def test_unmatched_summary_name_is_unknown_bot(self):
        result = await BotResolver(_store()).resolve(summary="An assistant named Nova called.")
        assert isinstance(result, UnknownBot)
        assert result.name == "Nova"

    @pytest.mark.asyncio
    async def test_nothing_to_go_on(self):
        assert await BotResolver(_store()).resolve(summary="Routine call.") is None
        assert await BotResolver(_store()).resolve() is None

    @pytest.mark.asyncio
    async def test_deterministic(self):
        resolver = BotResolver(_store())
        results = [await resolver.resolve(identifier="sarah") for _ in range(5)]
        assert len({r.bot_id for r in results}) == 1
