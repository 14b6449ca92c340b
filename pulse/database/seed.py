"""
pulse.database.seed — Default Settings Seeder
==============================================

Baseline leveling settings seeded on first startup.

Idempotent — only inserts keys that don't already exist.  Values changed
later through :class:`~pulse.services.settings_service.SettingsStore`
are never overwritten.
"""

from __future__ import annotations

import json
import logging

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from pulse.database.models import Setting

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Default settings catalogue
# ---------------------------------------------------------------------------
DEFAULT_SETTINGS: dict[str, tuple[object, str, str]] = {
    "leveling.xp_min": (15, "leveling", "Smallest XP grant per qualifying message"),
    "leveling.xp_max": (25, "leveling", "Largest XP grant per qualifying message"),
    "leveling.cooldown_ms": (1000, "leveling", "Min milliseconds between XP grants per member"),
    "leveling.level_base": (100, "leveling", "XP cost of the first level-up"),
    "leveling.level_growth": (1.1, "leveling", "Growth factor of each further level-up"),
    "leveling.enabled": (True, "leveling", "Announce level-ups at all"),
    "leveling.messages": (True, "leveling", "Post a congratulation message on level-up"),
    "leveling.channel": (None, "leveling", "Channel ID for level-up notices (blank = same channel)"),
}
"""Each entry maps ``key`` → ``(default_value, category, description)``."""


def seed_default_settings(engine: Engine) -> int:
    """Insert any missing default settings.  Returns the number inserted."""
    inserted = 0
    with Session(engine) as session:
        existing = set(session.scalars(select(Setting.key)).all())
        for key, (value, category, description) in DEFAULT_SETTINGS.items():
            if key in existing:
                continue
            session.add(Setting(
                key=key,
                value_json=json.dumps(value),
                category=category,
                description=description,
            ))
            inserted += 1
        session.commit()

    if inserted:
        logger.info("Seeded %d default settings", inserted)
    return inserted
