"""
pulse.constants — Shared Constants & Helpers
=============================================

Single source of truth for presentation constants and the leveling curve.
Import from here instead of duplicating in cogs, services, and tests.

Leveling uses **cumulative XP**: a member's ``xp`` only ever grows, and
``level`` is always the largest level whose total cost fits inside it.
Nothing in Pulse subtracts XP on level-up.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pulse.engine.cache import ConfigCache

# ---------------------------------------------------------------------------
# Presentation
# ---------------------------------------------------------------------------
RANK_BADGES: list[str] = ["\U0001f947", "\U0001f948", "\U0001f949"]  # 🥇🥈🥉

DEFAULT_LEVEL_BASE = 100
DEFAULT_LEVEL_GROWTH = 1.1


def rank_badge(position: int) -> str:
    """Medal for the top three, ``**n.**`` for everyone else."""
    if 0 < position <= len(RANK_BADGES):
        return RANK_BADGES[position - 1]
    return f"**{position}.**"


def format_voice_time(seconds: int) -> str:
    """Render a duration the way leaderboards show it: ``45s``, ``2m 5s``, ``1h 30m``."""
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        minutes, rest = divmod(seconds, 60)
        return f"{minutes}m {rest}s" if rest else f"{minutes}m"
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    return f"{hours}h {minutes}m" if minutes else f"{hours}h"


# ---------------------------------------------------------------------------
# Level curve — THE single canonical implementation
# ---------------------------------------------------------------------------
def _curve_params(cache: ConfigCache | None) -> tuple[int, float]:
    if cache is not None:
        base = cache.get_int("leveling.level_base", DEFAULT_LEVEL_BASE)
        growth = cache.get_float("leveling.level_growth", DEFAULT_LEVEL_GROWTH)
    else:
        base = DEFAULT_LEVEL_BASE
        growth = DEFAULT_LEVEL_GROWTH
    if base <= 0 or growth <= 1.0:
        # A flat or shrinking curve would make level_for_xp loop forever
        base, growth = DEFAULT_LEVEL_BASE, DEFAULT_LEVEL_GROWTH
    return base, growth


def xp_required_for_level(level: int, cache: ConfigCache | None = None) -> int:
    """XP needed to advance from *level* to ``level + 1``.

    Uses the exponential step cost::

        required = floor(level_base * level_growth ** (level - 1))

    Level 1→2 costs 100, 2→3 costs 110, 3→4 costs 121, … with the defaults.
    """
    if level < 1:
        raise ValueError(f"level must be >= 1, got {level}")
    base, growth = _curve_params(cache)
    return int(base * (growth ** (level - 1)))


def total_xp_for_level(level: int, cache: ConfigCache | None = None) -> int:
    """Cumulative XP at which *level* is reached (0 for level 1)."""
    return sum(xp_required_for_level(step, cache) for step in range(1, level))


def level_for_xp(xp: int, cache: ConfigCache | None = None) -> int:
    """Largest level whose cumulative cost is covered by *xp*."""
    level = 1
    spent = 0
    while True:
        step = xp_required_for_level(level, cache)
        if spent + step > xp:
            return level
        spent += step
        level += 1


def xp_until_next_level(xp: int, level: int, cache: ConfigCache | None = None) -> int:
    """XP still missing before ``level + 1`` is reached."""
    return max(total_xp_for_level(level + 1, cache) - xp, 0)


def level_progress_fraction(xp: int, level: int, cache: ConfigCache | None = None) -> float:
    """Progress through the current level as a value in ``[0, 1]``."""
    into_level = xp - total_xp_for_level(level, cache)
    required = xp_required_for_level(level, cache)
    return min(max(into_level / required, 0.0), 1.0)
