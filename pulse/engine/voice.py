"""
pulse.engine.voice — Voice Session State Machine (pure part)
=============================================================

Per (guild, member) the tracker is either ``DISCONNECTED`` or
``CONNECTED(channel, joined_at)``.  A voice-state change carries
``(old_channel, new_channel)`` and maps to exactly one transition:

    None → X      JOIN     open a session on X
    X → None      LEAVE    flush elapsed time to the open session, close it
    X → Y (X≠Y)   SWITCH   flush to the open session, reopen on Y
    X → X         NOOP     mute/deafen/stream toggles, not a channel change

Persistence lives in :mod:`pulse.services.voice_service`.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from datetime import datetime

from pulse.engine.events import as_utc


class VoiceTransition(enum.StrEnum):
    JOIN = "join"
    LEAVE = "leave"
    SWITCH = "switch"
    NOOP = "noop"


@dataclass(frozen=True, slots=True)
class VoiceFlush:
    """Seconds credited to a channel when a session was closed.

    ``seconds == 0`` means nothing was written (no open session, or a
    non-positive elapsed time from clock skew).
    """

    channel_id: int | None
    seconds: int

    @property
    def flushed(self) -> bool:
        return self.seconds > 0


NOTHING_FLUSHED = VoiceFlush(channel_id=None, seconds=0)


def classify_transition(old_channel_id: int | None, new_channel_id: int | None) -> VoiceTransition:
    if old_channel_id == new_channel_id:
        return VoiceTransition.NOOP
    if old_channel_id is None:
        return VoiceTransition.JOIN
    if new_channel_id is None:
        return VoiceTransition.LEAVE
    return VoiceTransition.SWITCH


def session_seconds(joined_at: datetime, now: datetime) -> int:
    """Whole seconds between *joined_at* and *now*; 0 if *now* is not later."""
    elapsed = (as_utc(now) - as_utc(joined_at)).total_seconds()
    if elapsed <= 0:
        return 0
    return math.floor(elapsed)
