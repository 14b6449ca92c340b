"""
pulse.bot.cogs.meta — Rank & Activity Leaderboard Commands
==========================================================

Hybrid commands:
- /rank [member]          — level, XP, rank and totals; a second tab pages
                            through per-channel activity
- /activity-leaderboard   — members by (level, XP), or the guild's top
                            text and voice channels

Both replies carry a button row that only the invoker can use and that is
disabled after ``view_timeout_seconds`` (5 minutes by default).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import discord
from discord import app_commands, ui
from discord.ext import commands

from pulse.database.engine import run_db
from pulse.services.embeds import (
    build_member_leaderboard_embed,
    build_rank_channels_embed,
    build_rank_overview_embed,
    build_server_leaderboard_embed,
)
from pulse.services.leaderboard_service import (
    Page,
    clamp_page,
    get_member_text_channels_sorted,
    get_member_voice_channels_sorted,
    get_page,
    get_rank,
    get_server_channel_board,
)
from pulse.services.stats_service import ChannelCount, MemberStatsSnapshot, get_member_stats

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from pulse.bot.core import PulseBot

logger = logging.getLogger(__name__)

# Channels per type shown on one page of the /rank channels tab
CHANNELS_PER_PAGE = 5


# ---------------------------------------------------------------------------
# Data loading (sync, run via run_db)
# ---------------------------------------------------------------------------
@dataclass
class RankData:
    stats: MemberStatsSnapshot
    rank: int
    text_channels: list[ChannelCount]
    voice_channels: list[ChannelCount]


def load_rank_data(engine: Engine, guild_id: int, user_id: int) -> RankData | None:
    stats = get_member_stats(engine, guild_id, user_id)
    if stats is None:
        return None
    return RankData(
        stats=stats,
        rank=get_rank(engine, guild_id, user_id) or 1,
        text_channels=get_member_text_channels_sorted(engine, guild_id, user_id),
        voice_channels=get_member_voice_channels_sorted(engine, guild_id, user_id),
    )


def channel_pages(
    text: list[ChannelCount],
    voice: list[ChannelCount],
    page_index: int,
    per_page: int = CHANNELS_PER_PAGE,
) -> tuple[Page[ChannelCount], Page[ChannelCount], int, int]:
    """Page text and voice channels in lockstep.

    Returns ``(text_page, voice_page, page_index, total_pages)`` where the
    page count is driven by whichever list is longer.
    """
    index, total_pages = clamp_page(page_index, max(len(text), len(voice)), per_page)
    start = index * per_page

    def _slice(items: list[ChannelCount]) -> Page[ChannelCount]:
        # No per-list clamping: the shorter list simply runs out
        return Page(
            entries=items[start:start + per_page],
            page_index=index,
            total_pages=total_pages,
            total_count=len(items),
        )

    return _slice(text), _slice(voice), index, total_pages


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------
class _PagedView(ui.View):
    """Shared behaviour: invoker-only buttons, first/prev/next/last, timeout."""

    def __init__(self, owner_id: int, timeout: float) -> None:
        super().__init__(timeout=timeout)
        self.owner_id = owner_id
        self.page_index = 0
        self.total_pages = 1
        self.message: discord.Message | None = None

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        if interaction.user.id != self.owner_id:
            await interaction.response.send_message(
                "You cannot use these buttons!", ephemeral=True,
            )
            return False
        return True

    async def on_timeout(self) -> None:
        for item in self.children:
            if isinstance(item, ui.Button):
                item.disabled = True
        if self.message is None:
            return
        try:
            await self.message.edit(view=self)
        except discord.HTTPException:
            logger.debug("Could not disable buttons on message %s", self.message.id)

    def _sync_nav(self, enabled: bool = True) -> None:
        self.first_button.disabled = not enabled or self.page_index == 0
        self.prev_button.disabled = not enabled or self.page_index == 0
        self.next_button.disabled = not enabled or self.page_index >= self.total_pages - 1
        self.last_button.disabled = not enabled or self.page_index >= self.total_pages - 1

    async def render(self) -> discord.Embed:
        raise NotImplementedError

    async def _go(self, interaction: discord.Interaction, page_index: int) -> None:
        self.page_index = page_index
        try:
            embed = await self.render()
        except Exception:
            logger.exception("Error rendering page %d for user %s", page_index, self.owner_id)
            await interaction.response.send_message("An error occurred!", ephemeral=True)
            return
        await interaction.response.edit_message(embed=embed, view=self)

    @ui.button(label="\u23ee\ufe0f", style=discord.ButtonStyle.secondary, row=1)
    async def first_button(self, interaction: discord.Interaction, button: ui.Button) -> None:
        await self._go(interaction, 0)

    @ui.button(label="\u25c0\ufe0f", style=discord.ButtonStyle.secondary, row=1)
    async def prev_button(self, interaction: discord.Interaction, button: ui.Button) -> None:
        await self._go(interaction, max(0, self.page_index - 1))

    @ui.button(label="\u25b6\ufe0f", style=discord.ButtonStyle.secondary, row=1)
    async def next_button(self, interaction: discord.Interaction, button: ui.Button) -> None:
        await self._go(interaction, min(self.total_pages - 1, self.page_index + 1))

    @ui.button(label="\u23ed\ufe0f", style=discord.ButtonStyle.secondary, row=1)
    async def last_button(self, interaction: discord.Interaction, button: ui.Button) -> None:
        await self._go(interaction, self.total_pages - 1)


class RankView(_PagedView):
    """Overview / Channels tabs for one member."""

    def __init__(
        self,
        bot: PulseBot,
        owner_id: int,
        target: discord.Member | discord.User,
        data: RankData,
    ) -> None:
        super().__init__(owner_id, bot.cfg.view_timeout_seconds)
        self.bot = bot
        self.target = target
        self.data = data
        self.tab = "overview"

    async def render(self) -> discord.Embed:
        avatar_url = self.target.display_avatar.url
        self.overview_button.style = (
            discord.ButtonStyle.primary if self.tab == "overview" else discord.ButtonStyle.secondary
        )
        self.channels_button.style = (
            discord.ButtonStyle.primary if self.tab == "channels" else discord.ButtonStyle.secondary
        )

        if self.tab == "overview":
            self._sync_nav(enabled=False)
            stats = self.data.stats
            joined_at = getattr(self.target, "joined_at", None)
            return build_rank_overview_embed(
                self.target.display_name,
                avatar_url,
                stats,
                self.data.rank,
                xp_to_next=stats.xp_until_next_level(self.bot.cache),
                progress=stats.level_progress(self.bot.cache),
                joined_at_ts=int(joined_at.timestamp()) if joined_at else None,
            )

        text_page, voice_page, self.page_index, self.total_pages = channel_pages(
            self.data.text_channels, self.data.voice_channels, self.page_index,
        )
        self._sync_nav()
        return build_rank_channels_embed(
            self.target.display_name,
            avatar_url,
            text_page,
            voice_page,
            page_index=self.page_index,
            total_pages=self.total_pages,
            per_page=CHANNELS_PER_PAGE,
        )

    async def _switch(self, interaction: discord.Interaction, tab: str) -> None:
        self.tab = tab
        await self._go(interaction, 0)

    @ui.button(label="Overview", emoji="\U0001f4ca", style=discord.ButtonStyle.primary, row=0)
    async def overview_button(self, interaction: discord.Interaction, button: ui.Button) -> None:
        await self._switch(interaction, "overview")

    @ui.button(label="Channels", emoji="\U0001f4fa", style=discord.ButtonStyle.secondary, row=0)
    async def channels_button(self, interaction: discord.Interaction, button: ui.Button) -> None:
        await self._switch(interaction, "channels")


class LeaderboardView(_PagedView):
    """Member / Server tabs of the guild leaderboard."""

    def __init__(self, bot: PulseBot, owner_id: int, guild_id: int) -> None:
        super().__init__(owner_id, bot.cfg.view_timeout_seconds)
        self.bot = bot
        self.guild_id = guild_id
        self.tab = "member"

    async def render(self) -> discord.Embed:
        self.member_button.style = (
            discord.ButtonStyle.primary if self.tab == "member" else discord.ButtonStyle.secondary
        )
        self.server_button.style = (
            discord.ButtonStyle.primary if self.tab == "server" else discord.ButtonStyle.secondary
        )

        if self.tab == "member":
            page = await run_db(
                get_page,
                self.bot.engine,
                self.guild_id,
                self.page_index,
                self.bot.cfg.leaderboard_page_size,
            )
            self.page_index, self.total_pages = page.page_index, page.total_pages
            self._sync_nav()
            return build_member_leaderboard_embed(page)

        board = await run_db(get_server_channel_board, self.bot.engine, self.guild_id)
        self.page_index, self.total_pages = 0, 1
        self._sync_nav()
        return build_server_leaderboard_embed(board)

    async def _switch(self, interaction: discord.Interaction, tab: str) -> None:
        self.tab = tab
        await self._go(interaction, 0)

    @ui.button(label="Members", emoji="\U0001f465", style=discord.ButtonStyle.primary, row=0)
    async def member_button(self, interaction: discord.Interaction, button: ui.Button) -> None:
        await self._switch(interaction, "member")

    @ui.button(label="Server", emoji="\U0001f3e0", style=discord.ButtonStyle.secondary, row=0)
    async def server_button(self, interaction: discord.Interaction, button: ui.Button) -> None:
        await self._switch(interaction, "server")


# ---------------------------------------------------------------------------
# Cog
# ---------------------------------------------------------------------------
class Meta(commands.Cog, name="Meta"):
    """Rank cards and activity leaderboards."""

    def __init__(self, bot: PulseBot) -> None:
        self.bot = bot

    # -------------------------------------------------------------------
    # /rank
    # -------------------------------------------------------------------
    @commands.hybrid_command(  # type: ignore[arg-type]
        name="rank",
        description="Displays the level and XP of a member.",
    )
    @commands.guild_only()
    @app_commands.describe(member="The member to look up (defaults to you)")
    async def rank(self, ctx: commands.Context, member: discord.Member | None = None) -> None:
        assert ctx.guild is not None
        target = member or ctx.author
        await ctx.defer()

        data = await run_db(load_rank_data, self.bot.engine, ctx.guild.id, target.id)
        if data is None:
            await ctx.send(f"\u274c No stats found for **{target.display_name}**.", ephemeral=True)
            return

        view = RankView(self.bot, ctx.author.id, target, data)
        embed = await view.render()
        view.message = await ctx.send(embed=embed, view=view)

    # -------------------------------------------------------------------
    # /activity-leaderboard
    # -------------------------------------------------------------------
    @commands.hybrid_command(  # type: ignore[arg-type]
        name="activity-leaderboard",
        description="Shows the activity leaderboard for members or the server.",
    )
    @commands.guild_only()
    async def activity_leaderboard(self, ctx: commands.Context) -> None:
        assert ctx.guild is not None
        await ctx.defer()

        view = LeaderboardView(self.bot, ctx.author.id, ctx.guild.id)
        embed = await view.render()
        view.message = await ctx.send(embed=embed, view=view)

    async def cog_command_error(self, ctx: commands.Context, error: Exception) -> None:
        if isinstance(error, commands.NoPrivateMessage):
            await ctx.send("This command can only be used in a server.", ephemeral=True)
            return
        logger.exception("Error in command %s", ctx.command, exc_info=error)
        await ctx.send("Something went wrong loading stats. Please try again later.", ephemeral=True)


async def setup(bot: PulseBot) -> None:
    await bot.add_cog(Meta(bot))
