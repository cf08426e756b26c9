"""
Bot Resolution — maps the platform's bot identifier / name to a stored bot.

Resolution order (first success wins):
  1. Exact uid match on the identifier
  2. Case-insensitive name substring match on the identifier
  3. Case-insensitive name substring match on the supplied name hint
  4. Name extracted from the summary (only when no name hint was supplied),
     looked up by substring
  5. Nothing found but a name or identifier is known → UnknownBot
  6. No name and no identifier → None
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

from medvoice.infrastructure.store import DataStore
from medvoice.schemas.bot import Bot
from medvoice.webhook.extractors import extract_bot_name

logger = logging.getLogger("webhook.bots")


@dataclass
class ResolvedBot:
    """A stored bot, plus which strategy found it."""
    bot: Bot
    strategy: str           # "uid", "name_like", "name_hint", "summary"

    @property
    def bot_id(self) -> Optional[str]:
        return self.bot.id

    @property
    def name(self) -> str:
        return self.bot.name


@dataclass
class UnknownBot:
    """
    Placeholder for a bot the store does not know.

    The call is still logged (bot_id stays null) and the best-known name is
    kept so the event can be attributed later.
    """
    name: str = ""
    identifier: str = ""

    @property
    def bot_id(self) -> Optional[str]:
        return None


BotReference = Union[ResolvedBot, UnknownBot]


class BotResolver:
    """Resolves a bot reference through the data store."""

    def __init__(self, store: DataStore) -> None:
        self._store = store

    async def resolve(
        self,
        identifier: Optional[str] = None,
        name_hint: Optional[str] = None,
        summary: Optional[str] = None,
    ) -> Optional[BotReference]:
        if identifier:
            bot = await self._store.find_bot_by_uid(identifier)
            if bot:
                return ResolvedBot(bot=bot, strategy="uid")

            logger.info("Bot not found by uid %r, trying name search", identifier)
            bot = await self._first_by_name(identifier)
            if bot:
                logger.info("Found bot by name search: %s", bot.name)
                return ResolvedBot(bot=bot, strategy="name_like")

        if name_hint:
            bot = await self._first_by_name(name_hint)
            if bot:
                return ResolvedBot(bot=bot, strategy="name_hint")

        extracted = None if name_hint else extract_bot_name(summary)
        if extracted:
            bot = await self._first_by_name(extracted)
            if bot:
                logger.info("Found bot %s from summary name %r", bot.name, extracted)
                return ResolvedBot(bot=bot, strategy="summary")

        name = name_hint or extracted or ""
        if name or identifier:
            logger.warning(
                "Bot unresolved (identifier=%r, name=%r) — logging against unknown bot",
                identifier, name,
            )
            return UnknownBot(name=name, identifier=identifier or "")

        logger.error("No bot identifier or name in payload")
        return None

    async def _first_by_name(self, pattern: str) -> Optional[Bot]:
        matches = await self._store.find_bots_by_name_like(pattern)
        return matches[0] if matches else None
