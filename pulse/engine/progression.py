"""
pulse.engine.progression — XP Grant Policy & Level-Up Decision
===============================================================

Pure in-memory logic.  No Discord I/O, no DB I/O.

Pipeline for a qualifying message (non-bot author, guild context):

    cooldown gate → roll XP in [xp_min, xp_max] → (persist) → level decision

The cooldown is refreshed as soon as the gate is passed, so a grant that
later fails to persist is simply lost; it is never retried.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from threading import Lock
from typing import TYPE_CHECKING

from pulse.constants import level_for_xp

if TYPE_CHECKING:
    from pulse.engine.cache import ConfigCache

logger = logging.getLogger(__name__)

DEFAULT_XP_MIN = 15
DEFAULT_XP_MAX = 25
DEFAULT_COOLDOWN_MS = 1000

MemberKey = tuple[int, int]  # (guild_id, user_id)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class LevelDecision:
    """Outcome of adding XP to a member under the cumulative scheme."""

    xp: int
    old_level: int
    new_level: int

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.old_level


@dataclass(frozen=True, slots=True)
class GrantResult:
    """What a single message earned."""

    granted: bool
    xp: int = 0
    leveled_up: bool = False
    new_level: int | None = None


def decide_level(
    current_xp: int, current_level: int, amount: int, cache: ConfigCache | None = None
) -> LevelDecision:
    """Add *amount* to *current_xp* and recompute the level.

    The level never decreases, even if the stored level is somehow ahead
    of what the XP total supports.
    """
    new_xp = current_xp + amount
    new_level = max(current_level, level_for_xp(new_xp, cache))
    return LevelDecision(xp=new_xp, old_level=current_level, new_level=new_level)


# ---------------------------------------------------------------------------
# Cooldown store
# ---------------------------------------------------------------------------
class CooldownStore:
    """Last-grant timestamps per (guild, member).

    Thread-safe.  Owned by one :class:`ProgressionEngine`; two engines never
    share state.  Lives for the process lifetime only.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._last: dict[MemberKey, float] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._last)

    def last_grant(self, key: MemberKey) -> float | None:
        with self._lock:
            return self._last.get(key)

    def try_acquire(self, key: MemberKey, now: float, window: float) -> bool:
        """Pass the gate and refresh the timestamp, or return False.

        Denied when the previous grant was less than *window* seconds ago.
        Events that arrive out of order (``now`` before the stored
        timestamp) are denied and never move the timestamp backwards.
        """
        with self._lock:
            last = self._last.get(key)
            if last is not None and now - last < window:
                return False
            self._last[key] = now if last is None else max(last, now)
            return True

    def forget_member(self, guild_id: int, user_id: int) -> None:
        with self._lock:
            self._last.pop((guild_id, user_id), None)

    def forget_guild(self, guild_id: int) -> int:
        with self._lock:
            doomed = [k for k in self._last if k[0] == guild_id]
            for k in doomed:
                del self._last[k]
            return len(doomed)

    def prune(self, now: float, max_age: float) -> int:
        """Drop entries older than *max_age* seconds.  Returns how many."""
        cutoff = now - max_age
        with self._lock:
            doomed = [k for k, t in self._last.items() if t <= cutoff]
            for k in doomed:
                del self._last[k]
            return len(doomed)


# ---------------------------------------------------------------------------
# Progression engine
# ---------------------------------------------------------------------------
class ProgressionEngine:
    """Cooldown gate plus XP roll, tuned from the settings cache.

    Parameters
    ----------
    cache:
        Optional :class:`ConfigCache`; defaults apply when absent.
    cooldowns:
        Inject a store to share it deliberately (e.g. across cogs).
    rng:
        Random source; tests pass a seeded ``random.Random``.
    """

    def __init__(
        self,
        cache: ConfigCache | None = None,
        *,
        cooldowns: CooldownStore | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.cache = cache
        self.cooldowns = cooldowns if cooldowns is not None else CooldownStore()
        self._rng = rng or random.Random()

    @property
    def cooldown_seconds(self) -> float:
        ms = DEFAULT_COOLDOWN_MS
        if self.cache is not None:
            ms = self.cache.get_int("leveling.cooldown_ms", DEFAULT_COOLDOWN_MS)
        return max(ms, 0) / 1000.0

    @property
    def xp_range(self) -> tuple[int, int]:
        lo, hi = DEFAULT_XP_MIN, DEFAULT_XP_MAX
        if self.cache is not None:
            lo = self.cache.get_int("leveling.xp_min", DEFAULT_XP_MIN)
            hi = self.cache.get_int("leveling.xp_max", DEFAULT_XP_MAX)
        if lo < 0 or hi < lo:
            logger.warning("Invalid XP range %s..%s in settings; using defaults", lo, hi)
            return DEFAULT_XP_MIN, DEFAULT_XP_MAX
        return lo, hi

    def roll_xp(self) -> int:
        lo, hi = self.xp_range
        return self._rng.randint(lo, hi)

    def try_grant(self, guild_id: int, user_id: int, now: datetime) -> int | None:
        """Return the XP to award for a message at *now*, or None on cooldown."""
        if not self.cooldowns.try_acquire(
            (guild_id, user_id), now.timestamp(), self.cooldown_seconds
        ):
            logger.debug("XP cooldown active for user %s in guild %s", user_id, guild_id)
            return None
        return self.roll_xp()

    def forget_member(self, guild_id: int, user_id: int) -> None:
        self.cooldowns.forget_member(guild_id, user_id)

    def forget_guild(self, guild_id: int) -> None:
        self.cooldowns.forget_guild(guild_id)
