"""
pulse.database.models — SQLAlchemy 2.0 Data Models
===================================================

Tables:
- member_stats          — XP, level and activity totals per (guild, member)
- member_channel_stats  — Per-channel message counts / voice seconds per member
- server_stats          — One row per guild that has seen activity
- server_channel_stats  — Guild-wide per-channel message counts / voice seconds
- voice_sessions        — The currently open voice session per (guild, member)
- settings              — Key-value configuration store (dotted paths)

Per-channel counters are rows rather than a map column so that every
increment can be a single ``INSERT … ON CONFLICT DO UPDATE``.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Pulse ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ChannelKind(enum.StrEnum):
    """Which counter a per-channel row holds."""
    TEXT = "text"    # message count
    VOICE = "voice"  # seconds connected


# ---------------------------------------------------------------------------
# MemberStats — one row per (guild, member)
# ---------------------------------------------------------------------------
class MemberStats(Base):
    """Progression and activity totals for a member of one guild.

    ``message_count`` and ``voice_seconds`` always equal the sums of the
    member's ``member_channel_stats`` rows; both are written in the same
    transaction.  ``id`` doubles as the stable leaderboard tie-breaker.
    """
    __tablename__ = "member_stats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    message_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    voice_seconds: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0, server_default="0"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("guild_id", "user_id", name="uq_member_stats_guild_user"),
        CheckConstraint("xp >= 0", name="ck_member_stats_xp"),
        CheckConstraint("level >= 1", name="ck_member_stats_level"),
        Index("ix_member_stats_ranking", "guild_id", "level", "xp"),
    )

    def __repr__(self) -> str:
        return (
            f"<MemberStats guild={self.guild_id} user={self.user_id} "
            f"lvl={self.level} xp={self.xp}>"
        )


class MemberChannelStat(Base):
    """Per-channel counter for one member: messages (text) or seconds (voice)."""
    __tablename__ = "member_channel_stats"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    channel_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    kind: Mapped[str] = mapped_column(String(8), primary_key=True)
    count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")

    __table_args__ = (
        CheckConstraint("count >= 0", name="ck_member_channel_stats_count"),
    )

    def __repr__(self) -> str:
        return (
            f"<MemberChannelStat user={self.user_id} channel={self.channel_id} "
            f"{self.kind}={self.count}>"
        )


# ---------------------------------------------------------------------------
# ServerStats — one row per guild
# ---------------------------------------------------------------------------
class ServerStats(Base):
    __tablename__ = "server_stats"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<ServerStats guild={self.guild_id}>"


class ServerChannelStat(Base):
    """Guild-wide per-channel counter, independent of member rows."""
    __tablename__ = "server_channel_stats"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    channel_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    kind: Mapped[str] = mapped_column(String(8), primary_key=True)
    count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")

    __table_args__ = (
        CheckConstraint("count >= 0", name="ck_server_channel_stats_count"),
    )

    def __repr__(self) -> str:
        return (
            f"<ServerChannelStat guild={self.guild_id} channel={self.channel_id} "
            f"{self.kind}={self.count}>"
        )


# ---------------------------------------------------------------------------
# VoiceSession — the open voice connection, if any
# ---------------------------------------------------------------------------
class VoiceSession(Base):
    """Exists exactly while a member is connected to a tracked voice channel."""
    __tablename__ = "voice_sessions"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    channel_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<VoiceSession guild={self.guild_id} user={self.user_id} "
            f"channel={self.channel_id} since={self.joined_at}>"
        )


# ---------------------------------------------------------------------------
# Setting — admin-configurable key-value store
# ---------------------------------------------------------------------------
class Setting(Base):
    """Key-value configuration store.

    Keys are dotted paths (``leveling.cooldown_ms``,
    ``guilds.<id>.leveling.channel``).  Values are stored as JSON strings;
    typed accessors live in :class:`~pulse.engine.cache.ConfigCache`.
    """
    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(200), primary_key=True)
    value_json: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="general")
    description: Mapped[str | None] = mapped_column(Text, default=None)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_settings_category", "category"),
    )

    def __repr__(self) -> str:
        return f"<Setting key={self.key!r} category={self.category!r}>"
