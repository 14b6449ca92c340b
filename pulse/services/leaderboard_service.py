"""
pulse.services.leaderboard_service — Rank & Leaderboard Queries
================================================================

Read-only views over the aggregate store.

Members of a guild are ordered by ``(level desc, xp desc, id asc)``.
``id`` is the ``member_stats`` surrogate key, so ties resolve by first
activity and every member has exactly one position.  Channel breakdowns
are ordered by ``(count desc, channel_id asc)``.

Page rule used everywhere: ``total_pages = max(1, ceil(n / page_size))``
and the requested index is clamped into ``[0, total_pages - 1]``.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from pulse.database.models import ChannelKind, MemberStats
from pulse.services.stats_service import (
    ChannelCount,
    member_channel_counts,
    server_channel_counts,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 10
DEFAULT_BOARD_TOP = 5

_RANKING = (MemberStats.level.desc(), MemberStats.xp.desc(), MemberStats.id.asc())


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class LeaderboardEntry:
    position: int  # 1-based
    user_id: int
    level: int
    xp: int
    message_count: int
    voice_seconds: int


@dataclass(frozen=True)
class Page(Generic[T]):
    entries: list[T]
    page_index: int
    total_pages: int
    total_count: int

    @property
    def is_first(self) -> bool:
        return self.page_index == 0

    @property
    def is_last(self) -> bool:
        return self.page_index >= self.total_pages - 1


LeaderboardPage = Page


@dataclass
class ServerChannelBoard:
    """Top text and voice channels of a guild."""

    text: list[ChannelCount] = field(default_factory=list)
    voice: list[ChannelCount] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.text and not self.voice


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------
def clamp_page(page_index: int, total_count: int, page_size: int) -> tuple[int, int]:
    """Return ``(clamped_index, total_pages)`` for *total_count* items."""
    if page_size < 1:
        raise ValueError(f"page_size must be >= 1, got {page_size}")
    total_pages = max(1, math.ceil(total_count / page_size))
    return min(max(page_index, 0), total_pages - 1), total_pages


def paginate(items: Sequence[T], page_index: int, page_size: int = DEFAULT_PAGE_SIZE) -> Page[T]:
    """Slice an in-memory sequence into one page."""
    index, total_pages = clamp_page(page_index, len(items), page_size)
    start = index * page_size
    return Page(
        entries=list(items[start:start + page_size]),
        page_index=index,
        total_pages=total_pages,
        total_count=len(items),
    )


# ---------------------------------------------------------------------------
# Member ranking
# ---------------------------------------------------------------------------
def get_rank(engine: Engine, guild_id: int, user_id: int) -> int | None:
    """1-based leaderboard position of a member, or None without stats."""
    with Session(engine) as session:
        me = session.execute(
            select(MemberStats.id, MemberStats.level, MemberStats.xp).where(
                MemberStats.guild_id == guild_id, MemberStats.user_id == user_id,
            )
        ).one_or_none()
        if me is None:
            return None

        ahead = session.scalar(
            select(func.count()).select_from(MemberStats).where(
                MemberStats.guild_id == guild_id,
                or_(
                    MemberStats.level > me.level,
                    and_(MemberStats.level == me.level, MemberStats.xp > me.xp),
                    and_(
                        MemberStats.level == me.level,
                        MemberStats.xp == me.xp,
                        MemberStats.id < me.id,
                    ),
                ),
            )
        )
        return int(ahead or 0) + 1


def get_page(
    engine: Engine, guild_id: int, page_index: int, page_size: int = DEFAULT_PAGE_SIZE,
) -> Page[LeaderboardEntry]:
    """One page of the guild's member leaderboard."""
    with Session(engine) as session:
        total = int(session.scalar(
            select(func.count()).select_from(MemberStats).where(MemberStats.guild_id == guild_id)
        ) or 0)
        index, total_pages = clamp_page(page_index, total, page_size)
        offset = index * page_size
        rows = session.execute(
            select(
                MemberStats.user_id,
                MemberStats.level,
                MemberStats.xp,
                MemberStats.message_count,
                MemberStats.voice_seconds,
            )
            .where(MemberStats.guild_id == guild_id)
            .order_by(*_RANKING)
            .offset(offset)
            .limit(page_size)
        ).all()

    entries = [
        LeaderboardEntry(
            position=offset + i + 1,
            user_id=r.user_id,
            level=r.level,
            xp=r.xp,
            message_count=r.message_count,
            voice_seconds=r.voice_seconds,
        )
        for i, r in enumerate(rows)
    ]
    return Page(entries=entries, page_index=index, total_pages=total_pages, total_count=total)


# ---------------------------------------------------------------------------
# Channel breakdowns
# ---------------------------------------------------------------------------
def _member_channels(
    engine: Engine, guild_id: int, user_id: int, kind: ChannelKind, limit: int | None = None,
) -> list[ChannelCount]:
    with Session(engine) as session:
        return member_channel_counts(session, guild_id, user_id, kind, limit)


def _server_channels(
    engine: Engine, guild_id: int, kind: ChannelKind, limit: int | None = None,
) -> list[ChannelCount]:
    with Session(engine) as session:
        return server_channel_counts(session, guild_id, kind, limit)


def get_member_text_channels_sorted(engine: Engine, guild_id: int, user_id: int) -> list[ChannelCount]:
    return _member_channels(engine, guild_id, user_id, ChannelKind.TEXT)


def get_member_voice_channels_sorted(engine: Engine, guild_id: int, user_id: int) -> list[ChannelCount]:
    return _member_channels(engine, guild_id, user_id, ChannelKind.VOICE)


def get_server_text_channels_sorted(engine: Engine, guild_id: int) -> list[ChannelCount]:
    return _server_channels(engine, guild_id, ChannelKind.TEXT)


def get_server_voice_channels_sorted(engine: Engine, guild_id: int) -> list[ChannelCount]:
    return _server_channels(engine, guild_id, ChannelKind.VOICE)


def get_server_channel_board(
    engine: Engine, guild_id: int, top: int = DEFAULT_BOARD_TOP,
) -> ServerChannelBoard:
    """Top *top* text channels and top *top* voice channels of a guild."""
    return ServerChannelBoard(
        text=_server_channels(engine, guild_id, ChannelKind.TEXT, limit=top),
        voice=_server_channels(engine, guild_id, ChannelKind.VOICE, limit=top),
    )
