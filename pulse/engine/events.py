"""
pulse.engine.events — Activity Event Envelopes
===============================================

Every Discord gateway event the tracker cares about is normalized into one
of these immutable envelopes before it touches the progression engine or
the voice tracker.  Nothing downstream ever sees a ``discord.Message``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from pulse.errors import InvalidActivityInput, require_snowflake

__all__ = ["MessageEvent", "VoiceStateEvent", "as_utc", "utcnow"]


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(ts: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


@dataclass(frozen=True, slots=True)
class MessageEvent:
    """A message posted in a guild channel."""

    guild_id: int
    user_id: int
    channel_id: int
    is_bot: bool = False
    timestamp: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        require_snowflake("guild_id", self.guild_id)
        require_snowflake("user_id", self.user_id)
        require_snowflake("channel_id", self.channel_id)
        if not isinstance(self.timestamp, datetime):
            raise InvalidActivityInput(f"timestamp must be a datetime, got {self.timestamp!r}")


@dataclass(frozen=True, slots=True)
class VoiceStateEvent:
    """A member's voice channel changed (``None`` means not connected)."""

    guild_id: int
    user_id: int
    old_channel_id: int | None
    new_channel_id: int | None
    is_bot: bool = False
    timestamp: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        require_snowflake("guild_id", self.guild_id)
        require_snowflake("user_id", self.user_id)
        if self.old_channel_id is not None:
            require_snowflake("old_channel_id", self.old_channel_id)
        if self.new_channel_id is not None:
            require_snowflake("new_channel_id", self.new_channel_id)
        if not isinstance(self.timestamp, datetime):
            raise InvalidActivityInput(f"timestamp must be a datetime, got {self.timestamp!r}")
