"""
pulse.bot.cogs.social — Message Counting & XP
==============================================

Listens for on_message events and hands them to the ActivityTracker.

Pipeline:
1. on_message fires → gate checks (bot, DM)
2. ActivityTracker counts the message and, off cooldown, grants XP
3. On level-up, post a congratulation notice if the guild has them enabled

Level-up notices read three settings, each overridable per guild at
``guilds.<id>.leveling.*``: ``leveling.enabled``, ``leveling.messages``
and ``leveling.channel`` (``null`` means the channel the message was in).
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

import discord
from discord.ext import commands, tasks

from pulse.services.embeds import build_level_up_message

if TYPE_CHECKING:
    from pulse.bot.core import PulseBot
    from pulse.services.tracker import MessageOutcome

logger = logging.getLogger(__name__)

# Cooldown entries older than this are dropped by the cleanup loop
COOLDOWN_RETENTION_SECONDS = 600


class Social(commands.Cog, name="Social"):
    """Counts messages and awards XP."""

    def __init__(self, bot: PulseBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        self._cleanup_cooldowns.start()

    async def cog_unload(self) -> None:
        self._cleanup_cooldowns.cancel()

    @tasks.loop(minutes=5)
    async def _cleanup_cooldowns(self) -> None:
        """Prune expired entries from the XP cooldown store."""
        pruned = self.bot.progression.cooldowns.prune(time.time(), COOLDOWN_RETENTION_SECONDS)
        if pruned:
            logger.debug("Pruned %d expired cooldown entries", pruned)

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        try:
            await self._handle_message(message)
        except Exception:
            logger.exception(
                "Error processing message %s from user %s",
                message.id,
                message.author.id,
            )

    async def _handle_message(self, message: discord.Message) -> None:
        if message.author.bot or message.guild is None:
            return

        outcome = await self.bot.tracker.on_message(
            guild_id=message.guild.id,
            user_id=message.author.id,
            channel_id=message.channel.id,
            is_bot=message.author.bot,
            timestamp=message.created_at,
        )
        if outcome is not None and outcome.leveled_up:
            await self._announce_level_up(message, outcome)

    def _level_up_channel(self, message: discord.Message) -> discord.abc.Messageable | None:
        """Where to post a level-up notice, or None when notices are off."""
        guild = message.guild
        assert guild is not None
        settings = self.bot.settings
        if not settings.get_guild_setting(guild.id, "leveling.enabled", True):
            return None
        if not settings.get_guild_setting(guild.id, "leveling.messages", True):
            return None

        channel_id = settings.get_guild_setting(guild.id, "leveling.channel")
        if channel_id is None:
            return message.channel
        channel = guild.get_channel(int(channel_id))
        if not isinstance(channel, discord.abc.Messageable):
            logger.warning(
                "Level-up channel %s not found or not text-based in guild %s",
                channel_id, guild.id,
            )
            return None
        return channel

    async def _announce_level_up(self, message: discord.Message, outcome: MessageOutcome) -> None:
        logger.debug(
            "User %s leveled up to Level %s in guild %s",
            outcome.user_id, outcome.grant.new_level, outcome.guild_id,
        )
        channel = self._level_up_channel(message)
        if channel is None:
            return
        try:
            await channel.send(build_level_up_message(outcome.user_id, outcome.grant.new_level))
        except discord.HTTPException:
            logger.exception(
                "Failed to send level-up message to channel %s",
                getattr(channel, "id", None),
            )


async def setup(bot: PulseBot) -> None:
    await bot.add_cog(Social(bot))
