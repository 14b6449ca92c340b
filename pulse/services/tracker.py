"""
pulse.services.tracker — Event Dispatch Adapter
===============================================

The single entry point between Discord cogs and the activity core.

    cog ──► ActivityTracker.on_message ──► ProgressionEngine (cooldown, roll)
                                       └─► stats_service (counts, XP, level)
    cog ──► ActivityTracker.on_voice_state_change ──► voice_service

Concurrency model:

* All mutations for one (guild, member) run under a per-member
  ``asyncio.Lock``; different members proceed in parallel.
* DB work runs on worker threads through :func:`run_db_bounded`, so a
  stuck connection can delay one event by at most ``db_timeout`` seconds.
  The member stays locked until the abandoned worker really finishes.
* Removing a guild waits for that guild's queued events, then deletes.
* A failed event is logged and dropped.  Nothing is retried inline, and an
  XP cooldown consumed by a failed grant stays consumed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Hashable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from pulse.database.engine import run_db_bounded
from pulse.engine.events import MessageEvent, VoiceStateEvent, utcnow
from pulse.engine.progression import GrantResult, ProgressionEngine
from pulse.engine.voice import VoiceFlush
from pulse.errors import InvalidActivityInput, PersistenceTimeout
from pulse.services.settings_service import guild_key
from pulse.services.stats_service import (
    XpUpdate,
    apply_xp,
    delete_guild_data,
    delete_member_data,
    record_message,
)
from pulse.services.voice_service import apply_voice_change

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from pulse.engine.cache import ConfigCache

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_DB_TIMEOUT = 5.0

# Errors that drop an event instead of propagating to the cog
_DROPPED = (SQLAlchemyError, TimeoutError)


# ---------------------------------------------------------------------------
# Per-key locks
# ---------------------------------------------------------------------------
class _LockEntry:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.holders = 0


class KeySlot:
    """Handle for a held key; lets the holder push the release past its block."""

    __slots__ = ("pending",)

    def __init__(self) -> None:
        self.pending: asyncio.Future | None = None

    def release_after(self, future: asyncio.Future) -> None:
        """Keep the key locked until *future* completes."""
        self.pending = future


class KeyedLocks:
    """One ``asyncio.Lock`` per key, discarded once nobody holds or awaits it.

    A holder whose database work timed out hands the still-running worker to
    :meth:`KeySlot.release_after`; the next holder of that key then waits for
    the worker, not just for the timed-out coroutine.
    """

    def __init__(self) -> None:
        self._entries: dict[Hashable, _LockEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def keys(self) -> list[Hashable]:
        """Keys currently held or awaited."""
        return list(self._entries)

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[KeySlot]:
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _LockEntry()
        entry.holders += 1
        try:
            await entry.lock.acquire()
        except asyncio.CancelledError:
            self._forget(key, entry)
            raise

        slot = KeySlot()
        try:
            yield slot
        finally:
            pending = slot.pending
            if pending is not None and not pending.done():
                pending.add_done_callback(lambda _fut: self._release(key, entry))
            else:
                self._release(key, entry)

    def _release(self, key: Hashable, entry: _LockEntry) -> None:
        entry.lock.release()
        self._forget(key, entry)

    def _forget(self, key: Hashable, entry: _LockEntry) -> None:
        entry.holders -= 1
        if entry.holders == 0 and self._entries.get(key) is entry:
            del self._entries[key]


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class MessageOutcome:
    """What a counted message did: the count always, XP when off cooldown."""

    guild_id: int
    user_id: int
    channel_id: int
    grant: GrantResult

    @property
    def leveled_up(self) -> bool:
        return self.grant.leveled_up


def _record_message_sync(
    engine: Engine,
    cache: ConfigCache | None,
    event: MessageEvent,
    xp: int | None,
) -> XpUpdate | None:
    record_message(engine, event.guild_id, event.user_id, event.channel_id)
    if xp is None:
        return None
    return apply_xp(engine, event.guild_id, event.user_id, xp, cache)


# ---------------------------------------------------------------------------
# Tracker
# ---------------------------------------------------------------------------
class ActivityTracker:
    """Routes normalized platform events into the activity core.

    Parameters
    ----------
    engine:
        SQLAlchemy engine for the aggregate store.
    progression:
        The :class:`ProgressionEngine` owning the XP cooldowns.
    cache:
        Settings cache used for the level curve.
    db_timeout:
        Seconds to wait on a single persistence call before dropping the event.
    """

    def __init__(
        self,
        engine: Engine,
        progression: ProgressionEngine | None = None,
        cache: ConfigCache | None = None,
        *,
        db_timeout: float = DEFAULT_DB_TIMEOUT,
    ) -> None:
        self.engine = engine
        self.cache = cache
        self.progression = progression or ProgressionEngine(cache)
        self.db_timeout = db_timeout
        self.locks = KeyedLocks()
        # Guilds the bot has left; their events are ignored until it rejoins
        self._departed: set[int] = set()

    async def _persist(self, slot: KeySlot, func: Callable[..., T], *args: Any) -> T:
        try:
            return await run_db_bounded(self.db_timeout, func, *args)
        except PersistenceTimeout as exc:
            slot.release_after(exc.pending)
            raise

    def _ignored(self, guild_id: int) -> bool:
        if guild_id in self._departed:
            logger.debug("Ignoring event for departed guild %s", guild_id)
            return True
        return False

    # -------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------
    async def on_message(
        self,
        guild_id: int,
        user_id: int,
        channel_id: int,
        is_bot: bool = False,
        timestamp: datetime | None = None,
    ) -> MessageOutcome | None:
        """Count a guild message and grant XP if the member is off cooldown.

        Returns None when the message was ignored (bot author, departed
        guild) or dropped.
        """
        if is_bot:
            return None
        try:
            event = MessageEvent(
                guild_id, user_id, channel_id, timestamp=timestamp or utcnow(),
            )
        except InvalidActivityInput:
            logger.warning(
                "Dropping malformed message event (guild=%r user=%r channel=%r)",
                guild_id, user_id, channel_id, exc_info=True,
            )
            return None

        async with self.locks.hold((event.guild_id, event.user_id)) as slot:
            if self._ignored(event.guild_id):
                return None
            xp = self.progression.try_grant(event.guild_id, event.user_id, event.timestamp)
            try:
                update = await self._persist(
                    slot, _record_message_sync, self.engine, self.cache, event, xp,
                )
            except _DROPPED:
                logger.exception(
                    "Failed to record message from user %s in guild %s",
                    event.user_id, event.guild_id,
                )
                return None

        if update is None:
            grant = GrantResult(granted=False)
        else:
            grant = GrantResult(
                granted=True,
                xp=xp or 0,
                leveled_up=update.leveled_up,
                new_level=update.new_level,
            )
        return MessageOutcome(event.guild_id, event.user_id, event.channel_id, grant)

    # -------------------------------------------------------------------
    # Voice
    # -------------------------------------------------------------------
    async def on_voice_state_change(
        self,
        guild_id: int,
        user_id: int,
        old_channel_id: int | None,
        new_channel_id: int | None,
        timestamp: datetime | None = None,
        is_bot: bool = False,
    ) -> VoiceFlush | None:
        """Apply one voice transition.  Returns what was flushed, or None if dropped."""
        if is_bot:
            return None
        try:
            event = VoiceStateEvent(
                guild_id, user_id, old_channel_id, new_channel_id,
                timestamp=timestamp or utcnow(),
            )
        except InvalidActivityInput:
            logger.warning(
                "Dropping malformed voice event (guild=%r user=%r %r→%r)",
                guild_id, user_id, old_channel_id, new_channel_id, exc_info=True,
            )
            return None

        async with self.locks.hold((event.guild_id, event.user_id)) as slot:
            if self._ignored(event.guild_id):
                return None
            try:
                return await self._persist(
                    slot,
                    apply_voice_change,
                    self.engine,
                    event.guild_id,
                    event.user_id,
                    event.old_channel_id,
                    event.new_channel_id,
                    event.timestamp,
                )
            except _DROPPED:
                logger.exception(
                    "Failed to apply voice change for user %s in guild %s",
                    event.user_id, event.guild_id,
                )
                return None

    # -------------------------------------------------------------------
    # Membership
    # -------------------------------------------------------------------
    async def on_member_removed(self, guild_id: int, user_id: int) -> dict[str, int] | None:
        """Forget a member who left the guild: stats, open session, cooldown."""
        async with self.locks.hold((guild_id, user_id)) as slot:
            self.progression.forget_member(guild_id, user_id)
            try:
                deleted = await self._persist(
                    slot, delete_member_data, self.engine, guild_id, user_id,
                )
            except (*_DROPPED, InvalidActivityInput):
                logger.exception(
                    "Failed to delete data for user %s in guild %s", user_id, guild_id,
                )
                return None
        logger.info(
            "Deleted %d stats rows for user %s who left guild %s",
            sum(deleted.values()), user_id, guild_id,
        )
        return deleted

    def on_guild_joined(self, guild_id: int) -> None:
        """Start tracking a guild again after the bot rejoins it."""
        self._departed.discard(guild_id)

    async def on_guild_removed(self, guild_id: int) -> dict[str, int] | None:
        """Forget every record of a guild the bot was removed from.

        New events for the guild are ignored from here on.  Events already
        queued or in flight finish first, so none of them can write rows
        back after the deletion.
        """
        self._departed.add(guild_id)
        for key in self.locks.keys():
            if isinstance(key, tuple) and key[0] == guild_id:
                async with self.locks.hold(key):
                    pass
        self.progression.forget_guild(guild_id)

        try:
            deleted = await run_db_bounded(
                self.db_timeout, delete_guild_data, self.engine, guild_id,
            )
        except (*_DROPPED, InvalidActivityInput):
            logger.exception("Failed to delete data for guild %s", guild_id)
            return None
        if self.cache is not None:
            self.cache.evict_prefix(guild_key(guild_id, ""))
        logger.info(
            "Deleted data for guild %s: %s",
            guild_id, ", ".join(f"{table}={n}" for table, n in deleted.items()),
        )
        return deleted
