"""
pulse.bot.cogs.voice — Voice Time Tracking
==========================================

Forwards every voice-state update to the ActivityTracker, which keeps
one open session per member and credits elapsed time to the channel the
session was opened on when the member leaves or switches.

Mute, deafen and stream toggles arrive as updates with the same channel
on both sides and are ignored by the tracker.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

if TYPE_CHECKING:
    from pulse.bot.core import PulseBot

logger = logging.getLogger(__name__)


class Voice(commands.Cog, name="Voice"):
    """Tracks time spent in voice channels."""

    def __init__(self, bot: PulseBot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        if member.bot:
            return
        old_channel_id = before.channel.id if before.channel else None
        new_channel_id = after.channel.id if after.channel else None
        if old_channel_id == new_channel_id:
            return

        try:
            flush = await self.bot.tracker.on_voice_state_change(
                guild_id=member.guild.id,
                user_id=member.id,
                old_channel_id=old_channel_id,
                new_channel_id=new_channel_id,
                is_bot=member.bot,
            )
            if flush is not None and flush.flushed:
                logger.info(
                    "%s spent %ds in voice channel %s",
                    member.display_name, flush.seconds, flush.channel_id,
                )
        except Exception:
            logger.exception(
                "Error processing voice update for %s in guild %s",
                member.id, member.guild.id,
            )


async def setup(bot: PulseBot) -> None:
    await bot.add_cog(Voice(bot))
