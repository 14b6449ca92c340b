"""
pulse.services.stats_service — Aggregate Store
===============================================

Find-or-create-and-increment operations for the two aggregate entities:

* **MemberStats** — ``member_stats`` + ``member_channel_stats``
* **ServerStats** — ``server_stats`` + ``server_channel_stats``

Every increment is a single ``INSERT … ON CONFLICT … DO UPDATE SET
count = count + n`` statement (PostgreSQL and SQLite ≥ 3.24), so two
concurrent increments on the same key can never lose an update.  A member
total and its per-channel row are always bumped in the same transaction,
which keeps ``message_count == sum(text rows)`` and
``voice_seconds == sum(voice rows)``.

Functions taking a ``session`` participate in the caller's transaction;
functions taking an ``engine`` open and commit their own.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import delete, select, text
from sqlalchemy.orm import Session

from pulse.constants import (
    level_progress_fraction,
    xp_required_for_level,
    xp_until_next_level,
)
from pulse.database.engine import get_session
from pulse.database.models import (
    ChannelKind,
    MemberChannelStat,
    MemberStats,
    ServerChannelStat,
    ServerStats,
    Setting,
    VoiceSession,
)
from pulse.engine.progression import LevelDecision, decide_level
from pulse.errors import require_non_negative, require_snowflake
from pulse.services.settings_service import delete_guild_settings

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from pulse.engine.cache import ConfigCache

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ChannelCount:
    channel_id: int
    count: int


@dataclass
class MemberStatsSnapshot:
    """Detached copy of a member's stats, safe to use outside a session."""

    guild_id: int
    user_id: int
    xp: int
    level: int
    message_count: int
    voice_seconds: int
    # channel_id → count, iterated by count desc then channel id
    text_channels: dict[int, int] = field(default_factory=dict)
    voice_channels: dict[int, int] = field(default_factory=dict)

    def xp_required_for_next_level(self, cache: ConfigCache | None = None) -> int:
        return xp_required_for_level(self.level, cache)

    def xp_until_next_level(self, cache: ConfigCache | None = None) -> int:
        return xp_until_next_level(self.xp, self.level, cache)

    def level_progress(self, cache: ConfigCache | None = None) -> float:
        return level_progress_fraction(self.xp, self.level, cache)


@dataclass
class ServerStatsSnapshot:
    guild_id: int
    text_channels: dict[int, int] = field(default_factory=dict)
    voice_channels: dict[int, int] = field(default_factory=dict)

    @property
    def total_text_messages(self) -> int:
        return sum(self.text_channels.values())

    @property
    def total_voice_seconds(self) -> int:
        return sum(self.voice_channels.values())

    def most_active_text_channel(self) -> ChannelCount | None:
        return _top(self.text_channels)

    def most_active_voice_channel(self) -> ChannelCount | None:
        return _top(self.voice_channels)


# apply_xp result: xp after the grant, old_level, new_level, leveled_up
XpUpdate = LevelDecision


def _top(counts: dict[int, int]) -> ChannelCount | None:
    best: ChannelCount | None = None
    for channel_id, count in counts.items():
        if count > 0 and (best is None or count > best.count):
            best = ChannelCount(channel_id, count)
    return best


# ---------------------------------------------------------------------------
# Raw upserts (atomic increments)
# ---------------------------------------------------------------------------
_BUMP_MEMBER = text("""
    INSERT INTO member_stats (guild_id, user_id, xp, level, message_count, voice_seconds)
    VALUES (:guild_id, :user_id, 0, 1, :messages, :seconds)
    ON CONFLICT (guild_id, user_id)
    DO UPDATE SET message_count = member_stats.message_count + :messages,
                  voice_seconds = member_stats.voice_seconds + :seconds,
                  updated_at = CURRENT_TIMESTAMP
""")

_BUMP_MEMBER_CHANNEL = text("""
    INSERT INTO member_channel_stats (guild_id, user_id, channel_id, kind, count)
    VALUES (:guild_id, :user_id, :channel_id, :kind, :amount)
    ON CONFLICT (guild_id, user_id, channel_id, kind)
    DO UPDATE SET count = member_channel_stats.count + :amount
""")

_TOUCH_SERVER = text("""
    INSERT INTO server_stats (guild_id)
    VALUES (:guild_id)
    ON CONFLICT (guild_id)
    DO UPDATE SET updated_at = CURRENT_TIMESTAMP
""")

_BUMP_SERVER_CHANNEL = text("""
    INSERT INTO server_channel_stats (guild_id, channel_id, kind, count)
    VALUES (:guild_id, :channel_id, :kind, :amount)
    ON CONFLICT (guild_id, channel_id, kind)
    DO UPDATE SET count = server_channel_stats.count + :amount
""")

_ADD_XP = text("""
    INSERT INTO member_stats (guild_id, user_id, xp, level, message_count, voice_seconds)
    VALUES (:guild_id, :user_id, :amount, 1, 0, 0)
    ON CONFLICT (guild_id, user_id)
    DO UPDATE SET xp = member_stats.xp + :amount,
                  updated_at = CURRENT_TIMESTAMP
    RETURNING xp, level
""")

_RAISE_LEVEL = text("""
    UPDATE member_stats
    SET level = :level
    WHERE guild_id = :guild_id AND user_id = :user_id AND level < :level
""")


def _bump_member(
    session: Session, guild_id: int, user_id: int, channel_id: int,
    kind: ChannelKind, amount: int,
) -> None:
    session.execute(_BUMP_MEMBER, {
        "guild_id": guild_id,
        "user_id": user_id,
        "messages": amount if kind is ChannelKind.TEXT else 0,
        "seconds": amount if kind is ChannelKind.VOICE else 0,
    })
    session.execute(_BUMP_MEMBER_CHANNEL, {
        "guild_id": guild_id,
        "user_id": user_id,
        "channel_id": channel_id,
        "kind": kind.value,
        "amount": amount,
    })


def _bump_server(
    session: Session, guild_id: int, channel_id: int, kind: ChannelKind, amount: int,
) -> None:
    session.execute(_TOUCH_SERVER, {"guild_id": guild_id})
    session.execute(_BUMP_SERVER_CHANNEL, {
        "guild_id": guild_id,
        "channel_id": channel_id,
        "kind": kind.value,
        "amount": amount,
    })


# ---------------------------------------------------------------------------
# Increments (caller's transaction)
# ---------------------------------------------------------------------------
def increment_member_text(session: Session, guild_id: int, user_id: int, channel_id: int) -> None:
    """Count one message for the member, in total and for *channel_id*."""
    require_snowflake("guild_id", guild_id)
    require_snowflake("user_id", user_id)
    require_snowflake("channel_id", channel_id)
    _bump_member(session, guild_id, user_id, channel_id, ChannelKind.TEXT, 1)


def increment_member_voice(
    session: Session, guild_id: int, user_id: int, channel_id: int, seconds: int,
) -> None:
    """Add *seconds* of voice time for the member, in total and for *channel_id*."""
    require_snowflake("guild_id", guild_id)
    require_snowflake("user_id", user_id)
    require_snowflake("channel_id", channel_id)
    require_non_negative("seconds", seconds)
    if seconds:
        _bump_member(session, guild_id, user_id, channel_id, ChannelKind.VOICE, seconds)


def increment_server_text(session: Session, guild_id: int, channel_id: int) -> None:
    require_snowflake("guild_id", guild_id)
    require_snowflake("channel_id", channel_id)
    _bump_server(session, guild_id, channel_id, ChannelKind.TEXT, 1)


def increment_server_voice(session: Session, guild_id: int, channel_id: int, seconds: int) -> None:
    require_snowflake("guild_id", guild_id)
    require_snowflake("channel_id", channel_id)
    require_non_negative("seconds", seconds)
    if seconds:
        _bump_server(session, guild_id, channel_id, ChannelKind.VOICE, seconds)


def record_voice_time(
    session: Session, guild_id: int, user_id: int, channel_id: int, seconds: int,
) -> None:
    """Credit a flushed voice segment to both the member and the guild."""
    increment_member_voice(session, guild_id, user_id, channel_id, seconds)
    increment_server_voice(session, guild_id, channel_id, seconds)


# ---------------------------------------------------------------------------
# Unit-of-work operations (own transaction)
# ---------------------------------------------------------------------------
def record_message(engine: Engine, guild_id: int, user_id: int, channel_id: int) -> None:
    """Count a message for the member and for the guild in one transaction."""
    with get_session(engine) as session:
        increment_member_text(session, guild_id, user_id, channel_id)
        increment_server_text(session, guild_id, channel_id)


def apply_xp(
    engine: Engine,
    guild_id: int,
    user_id: int,
    amount: int,
    cache: ConfigCache | None = None,
) -> XpUpdate:
    """Add *amount* XP to the member (creating the row if needed).

    The XP increment is atomic; the level is then raised to whatever the
    new total supports.  ``leveled_up`` on the result is what callers use
    to decide whether to announce.
    """
    require_snowflake("guild_id", guild_id)
    require_snowflake("user_id", user_id)
    require_non_negative("amount", amount)

    with get_session(engine) as session:
        row = session.execute(_ADD_XP, {
            "guild_id": guild_id, "user_id": user_id, "amount": amount,
        }).one()
        new_xp, stored_level = int(row[0]), int(row[1])
        decision = decide_level(new_xp - amount, stored_level, amount, cache)
        if decision.leveled_up:
            session.execute(_RAISE_LEVEL, {
                "guild_id": guild_id, "user_id": user_id, "level": decision.new_level,
            })

    if decision.leveled_up:
        logger.debug(
            "User %s leveled up to %d in guild %s", user_id, decision.new_level, guild_id,
        )
    return decision


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def member_channel_counts(
    session: Session,
    guild_id: int,
    user_id: int,
    kind: ChannelKind,
    limit: int | None = None,
) -> list[ChannelCount]:
    """A member's channels of one kind, by count desc then channel id."""
    stmt = (
        select(MemberChannelStat.channel_id, MemberChannelStat.count)
        .where(
            MemberChannelStat.guild_id == guild_id,
            MemberChannelStat.user_id == user_id,
            MemberChannelStat.kind == kind.value,
        )
        .order_by(MemberChannelStat.count.desc(), MemberChannelStat.channel_id.asc())
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    return [ChannelCount(r.channel_id, r.count) for r in session.execute(stmt)]


def server_channel_counts(
    session: Session, guild_id: int, kind: ChannelKind, limit: int | None = None,
) -> list[ChannelCount]:
    """A guild's channels of one kind, by count desc then channel id."""
    stmt = (
        select(ServerChannelStat.channel_id, ServerChannelStat.count)
        .where(ServerChannelStat.guild_id == guild_id, ServerChannelStat.kind == kind.value)
        .order_by(ServerChannelStat.count.desc(), ServerChannelStat.channel_id.asc())
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    return [ChannelCount(r.channel_id, r.count) for r in session.execute(stmt)]


def _as_map(counts: list[ChannelCount]) -> dict[int, int]:
    return {c.channel_id: c.count for c in counts}


def get_member_stats(engine: Engine, guild_id: int, user_id: int) -> MemberStatsSnapshot | None:
    """Return the member's stats with channel breakdowns, or None if absent."""
    with Session(engine) as session:
        stats = session.scalar(
            select(MemberStats).where(
                MemberStats.guild_id == guild_id, MemberStats.user_id == user_id,
            )
        )
        if stats is None:
            return None
        return MemberStatsSnapshot(
            guild_id=stats.guild_id,
            user_id=stats.user_id,
            xp=stats.xp,
            level=stats.level,
            message_count=stats.message_count,
            voice_seconds=stats.voice_seconds,
            text_channels=_as_map(
                member_channel_counts(session, guild_id, user_id, ChannelKind.TEXT)
            ),
            voice_channels=_as_map(
                member_channel_counts(session, guild_id, user_id, ChannelKind.VOICE)
            ),
        )


def get_server_stats(engine: Engine, guild_id: int) -> ServerStatsSnapshot | None:
    with Session(engine) as session:
        if session.get(ServerStats, guild_id) is None:
            return None
        return ServerStatsSnapshot(
            guild_id=guild_id,
            text_channels=_as_map(server_channel_counts(session, guild_id, ChannelKind.TEXT)),
            voice_channels=_as_map(server_channel_counts(session, guild_id, ChannelKind.VOICE)),
        )


# ---------------------------------------------------------------------------
# Deletion
# ---------------------------------------------------------------------------
def delete_member_data(engine: Engine, guild_id: int, user_id: int) -> dict[str, int]:
    """Remove every record of a member in a guild.  Returns rows deleted per table."""
    require_snowflake("guild_id", guild_id)
    require_snowflake("user_id", user_id)
    deleted: dict[str, int] = {}
    with get_session(engine) as session:
        for model in (MemberChannelStat, MemberStats, VoiceSession):
            result = session.execute(
                delete(model).where(model.guild_id == guild_id, model.user_id == user_id)
            )
            deleted[model.__tablename__] = result.rowcount or 0
    return deleted


def delete_guild_data(engine: Engine, guild_id: int) -> dict[str, int]:
    """Remove every stats, session and settings-override record for a guild."""
    require_snowflake("guild_id", guild_id)
    deleted: dict[str, int] = {}
    with get_session(engine) as session:
        for model in (
            MemberChannelStat, MemberStats, ServerChannelStat, ServerStats, VoiceSession,
        ):
            result = session.execute(delete(model).where(model.guild_id == guild_id))
            deleted[model.__tablename__] = result.rowcount or 0
        deleted[Setting.__tablename__] = delete_guild_settings(session, guild_id)
    return deleted
