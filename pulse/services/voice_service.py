"""
pulse.services.voice_service — Persisted Voice Sessions
========================================================

Applies one voice-state transition to the ``voice_sessions`` table and
credits elapsed time to the aggregate store, all in a single transaction.

The stored session, not the event's ``old_channel_id``, decides which
channel gets credited on LEAVE/SWITCH.  Gateway events can be dropped or
arrive after a restart, and the session row is what was actually observed.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.orm import Session

from pulse.database.engine import get_session
from pulse.database.models import VoiceSession
from pulse.engine.events import as_utc
from pulse.engine.voice import (
    NOTHING_FLUSHED,
    VoiceFlush,
    VoiceTransition,
    classify_transition,
    session_seconds,
)
from pulse.errors import require_snowflake
from pulse.services.stats_service import record_voice_time

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


def _locked_session(session: Session, guild_id: int, user_id: int) -> VoiceSession | None:
    return session.scalar(
        select(VoiceSession)
        .where(VoiceSession.guild_id == guild_id, VoiceSession.user_id == user_id)
        .with_for_update()
    )


def _flush(
    session: Session,
    open_session: VoiceSession | None,
    now: datetime,
    old_channel_id: int | None,
    transition: VoiceTransition,
) -> VoiceFlush:
    """Credit the open session's elapsed time and delete it."""
    if open_session is None:
        logger.debug(
            "Voice %s from channel %s without an open session; nothing to flush",
            transition, old_channel_id,
        )
        return NOTHING_FLUSHED

    channel_id = open_session.channel_id
    if old_channel_id is not None and old_channel_id != channel_id:
        logger.debug(
            "Voice event reports old channel %s but session is on %s; crediting the session",
            old_channel_id, channel_id,
        )
    seconds = session_seconds(open_session.joined_at, now)
    if seconds > 0:
        record_voice_time(
            session, open_session.guild_id, open_session.user_id, channel_id, seconds,
        )
    session.delete(open_session)
    session.flush()
    return VoiceFlush(channel_id=channel_id, seconds=seconds)


def apply_voice_change(
    engine: Engine,
    guild_id: int,
    user_id: int,
    old_channel_id: int | None,
    new_channel_id: int | None,
    now: datetime,
) -> VoiceFlush:
    """Apply a voice-state change observed at *now*.

    Returns the :class:`VoiceFlush` describing what was credited.  JOIN and
    NOOP transitions always return :data:`NOTHING_FLUSHED`.
    """
    require_snowflake("guild_id", guild_id)
    require_snowflake("user_id", user_id)
    transition = classify_transition(old_channel_id, new_channel_id)
    if transition is VoiceTransition.NOOP:
        return NOTHING_FLUSHED

    now = as_utc(now)
    result = NOTHING_FLUSHED
    with get_session(engine) as session:
        open_session = _locked_session(session, guild_id, user_id)

        if transition is VoiceTransition.JOIN:
            if open_session is not None:
                logger.info(
                    "Replacing stale voice session for user %s in guild %s (channel %s)",
                    user_id, guild_id, open_session.channel_id,
                )
                session.delete(open_session)
                session.flush()
        else:
            result = _flush(session, open_session, now, old_channel_id, transition)

        if transition in (VoiceTransition.JOIN, VoiceTransition.SWITCH):
            session.add(VoiceSession(
                guild_id=guild_id,
                user_id=user_id,
                channel_id=new_channel_id,
                joined_at=now,
            ))

    if result.flushed:
        logger.debug(
            "Credited %ds of voice in channel %s to user %s (guild %s)",
            result.seconds, result.channel_id, user_id, guild_id,
        )
    return result


def get_open_session(engine: Engine, guild_id: int, user_id: int) -> VoiceSession | None:
    """Return the member's open session (detached), or None."""
    with Session(engine) as session:
        row = session.get(VoiceSession, (guild_id, user_id))
        if row is not None:
            session.expunge(row)
        return row
