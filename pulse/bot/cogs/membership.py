"""
pulse.bot.cogs.membership — Member & Guild Removal
===================================================

Deletes a member's stats when they leave a guild, and every record of a
guild when the bot is removed from it.  Tracking resumes if the bot is
added back.  Requires the GUILD_MEMBERS privileged intent for
``on_member_remove``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

if TYPE_CHECKING:
    from pulse.bot.core import PulseBot

logger = logging.getLogger(__name__)


class Membership(commands.Cog, name="Membership"):
    """Cleans up stats for departed members and guilds."""

    def __init__(self, bot: PulseBot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_member_remove(self, member: discord.Member) -> None:
        try:
            if member.bot:
                return
            await self.bot.tracker.on_member_removed(member.guild.id, member.id)
        except Exception:
            logger.exception(
                "Error removing stats for member %s in guild %s",
                member.id, member.guild.id,
            )

    @commands.Cog.listener()
    async def on_guild_join(self, guild: discord.Guild) -> None:
        logger.info("Joined guild %s (ID: %d)", guild.name, guild.id)
        self.bot.tracker.on_guild_joined(guild.id)

    @commands.Cog.listener()
    async def on_guild_remove(self, guild: discord.Guild) -> None:
        try:
            logger.info("Removed from guild %s (ID: %d); deleting its data", guild.name, guild.id)
            await self.bot.tracker.on_guild_removed(guild.id)
        except Exception:
            logger.exception("Error removing data for guild %s", guild.id)


async def setup(bot: PulseBot) -> None:
    await bot.add_cog(Membership(bot))
