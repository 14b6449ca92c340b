"""
pulse.services.embeds — Discord embed builders for stats views
===============================================================

All embed construction lives here so the cogs only need to supply data.
No database access; every builder takes plain snapshots or pages.
"""

from __future__ import annotations

from collections.abc import Sequence

import discord

from pulse.constants import format_voice_time, rank_badge
from pulse.services.leaderboard_service import LeaderboardEntry, Page, ServerChannelBoard
from pulse.services.stats_service import ChannelCount, MemberStatsSnapshot

COLOR_PRIMARY = discord.Color.blurple()
COLOR_SECONDARY = discord.Color.teal()

# Zero-width spacer between inline fields
_SPACER = "\u200b"


def build_level_up_message(user_id: int, new_level: int) -> str:
    return f"Congratulations <@{user_id}>! You leveled up to **Level {new_level}**!"


def build_rank_overview_embed(
    display_name: str,
    avatar_url: str,
    stats: MemberStatsSnapshot,
    rank: int,
    *,
    xp_to_next: int,
    progress: float,
    joined_at_ts: int | None = None,
) -> discord.Embed:
    """Overview tab of ``/rank``."""
    embed = discord.Embed(
        title=f"\U0001f4ca Rank Information for {display_name}",
        color=COLOR_PRIMARY,
        timestamp=discord.utils.utcnow(),
    )
    embed.set_thumbnail(url=avatar_url)
    embed.add_field(name="\U0001f3c6 Rank", value=f"#{rank}", inline=True)
    embed.add_field(name="\U0001f4c8 Level", value=str(stats.level), inline=True)
    embed.add_field(
        name="\u2b50 Experience",
        value=f"{stats.xp:,} XP\n{xp_to_next:,} XP to next level ({round(progress * 100)}%)",
        inline=True,
    )
    embed.add_field(name="\U0001f4ac Messages", value=f"{stats.message_count:,}", inline=True)
    embed.add_field(
        name="\U0001f399\ufe0f Voice Time",
        value=format_voice_time(stats.voice_seconds),
        inline=True,
    )
    embed.add_field(
        name="\U0001f4c5 Member Since",
        value=f"<t:{joined_at_ts}:R>" if joined_at_ts is not None else "Unknown",
        inline=True,
    )
    return embed


def _channel_lines(
    channels: Sequence[ChannelCount], start: int, render_count, empty: str,
) -> str:
    if not channels:
        return empty
    return "\n\n".join(
        f"{rank_badge(start + i + 1)} <#{ch.channel_id}>\n{render_count(ch.count)}"
        for i, ch in enumerate(channels)
    )


def build_rank_channels_embed(
    display_name: str,
    avatar_url: str,
    text_page: Page[ChannelCount],
    voice_page: Page[ChannelCount],
    *,
    page_index: int,
    total_pages: int,
    per_page: int,
) -> discord.Embed:
    """Channels tab of ``/rank``: text and voice side by side."""
    embed = discord.Embed(
        title=f"\U0001f4ca Channel Activity for {display_name}",
        color=COLOR_SECONDARY,
        timestamp=discord.utils.utcnow(),
    )
    embed.set_thumbnail(url=avatar_url)
    embed.set_footer(
        text=(
            f"Page {page_index + 1} of {total_pages} • "
            f"{text_page.total_count} text, {voice_page.total_count} voice channels"
        )
    )
    if not text_page.entries and not voice_page.entries:
        embed.description = "No channel activity data available yet!"
        return embed

    start = page_index * per_page
    embed.add_field(
        name="\U0001f4dd Text Channels",
        value=_channel_lines(
            text_page.entries, start, lambda n: f"{n:,} messages", "No text channel activity",
        ),
        inline=True,
    )
    embed.add_field(name=_SPACER, value=_SPACER, inline=True)
    embed.add_field(
        name="\U0001f50a Voice Channels",
        value=_channel_lines(
            voice_page.entries, start, format_voice_time, "No voice channel activity",
        ),
        inline=True,
    )
    return embed


def build_member_leaderboard_embed(page: Page[LeaderboardEntry]) -> discord.Embed:
    embed = discord.Embed(
        title="\U0001f4ca Member Activity Leaderboard",
        color=COLOR_PRIMARY,
        timestamp=discord.utils.utcnow(),
    )
    embed.set_footer(
        text=f"Page {page.page_index + 1} of {page.total_pages} • {page.total_count} members total"
    )
    if not page.entries:
        embed.description = "No member statistics available yet!"
        return embed

    blocks = [
        f"{rank_badge(e.position)} <@{e.user_id}>\n"
        f"┣ **Level:** {e.level} ({e.xp:,} XP)\n"
        f"┣ **Messages:** {e.message_count:,}\n"
        f"┗ **Voice Time:** {format_voice_time(e.voice_seconds)}"
        for e in page.entries
    ]
    embed.description = "\n\n".join(blocks)
    return embed


def build_server_leaderboard_embed(board: ServerChannelBoard) -> discord.Embed:
    embed = discord.Embed(
        title="\U0001f4ca Server Activity Leaderboard",
        color=COLOR_SECONDARY,
        timestamp=discord.utils.utcnow(),
    )
    embed.set_footer(text="Top Channels")
    if board.is_empty:
        embed.description = "No channel statistics available yet!"
        return embed

    sections: list[str] = []
    if board.text:
        lines = [
            f"{rank_badge(i)} <#{ch.channel_id}>\n┗ **{ch.count:,}** Messages"
            for i, ch in enumerate(board.text, 1)
        ]
        sections.append("**\U0001f4dd Top Text Channels:**\n" + "\n\n".join(lines))
    if board.voice:
        lines = [
            f"{rank_badge(i)} <#{ch.channel_id}>\n┗ **{format_voice_time(ch.count)}** in voice"
            for i, ch in enumerate(board.voice, 1)
        ]
        sections.append("**\U0001f50a Top Voice Channels:**\n" + "\n\n".join(lines))
    embed.description = "\n\n".join(sections)
    return embed
