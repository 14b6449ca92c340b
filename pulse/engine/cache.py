"""
pulse.engine.cache — In-Memory Settings Cache
==============================================

Every gameplay tuning knob (XP range, cooldown, level curve, level-up
notices) lives in the ``settings`` table.  Reading it on every message
would put a query on the hot path, so the values are cached in memory and
reloaded whenever :class:`~pulse.services.settings_service.SettingsStore`
writes a change.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from pulse.database.models import Setting

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


class ConfigCache:
    """Thread-safe in-memory copy of the ``settings`` table.

    Usage:
        cache = ConfigCache(engine)
        cache.load_all()

        cooldown_ms = cache.get_int("leveling.cooldown_ms", 1000)
    """

    def __init__(self, engine: Engine | None) -> None:
        self._engine = engine
        self._lock = threading.Lock()
        # key → parsed JSON value
        self._settings: dict[str, Any] = {}

    # -------------------------------------------------------------------
    # Loading (synchronous — called via run_db or directly)
    # -------------------------------------------------------------------
    def load_all(self) -> None:
        """Load all settings from the DB.  Call on startup and after writes."""
        if self._engine is None:
            return
        with Session(self._engine) as session:
            rows = session.scalars(select(Setting)).all()
            parsed: dict[str, Any] = {}
            for row in rows:
                try:
                    parsed[row.key] = json.loads(row.value_json)
                except (json.JSONDecodeError, TypeError):
                    parsed[row.key] = row.value_json

        with self._lock:
            self._settings = parsed
        logger.info("ConfigCache loaded: %d settings", len(parsed))

    def put(self, key: str, value: Any) -> None:
        """Write-through update for a single key (no DB access)."""
        with self._lock:
            self._settings[key] = value

    def evict_prefix(self, prefix: str) -> int:
        """Drop every key starting with *prefix*.  Returns how many went."""
        with self._lock:
            doomed = [key for key in self._settings if key.startswith(prefix)]
            for key in doomed:
                del self._settings[key]
        return len(doomed)

    # -------------------------------------------------------------------
    # Reads (thread-safe)
    # -------------------------------------------------------------------
    def get_setting(self, key: str, default: Any = None) -> Any:
        """Return the parsed JSON value for *key*, or *default*."""
        with self._lock:
            return self._settings.get(key, default)

    def get_int(self, key: str, default: int = 0) -> int:
        val = self.get_setting(key)
        if val is None:
            return default
        try:
            return int(val)
        except (TypeError, ValueError):
            return default

    def get_float(self, key: str, default: float = 0.0) -> float:
        val = self.get_setting(key)
        if val is None:
            return default
        try:
            return float(val)
        except (TypeError, ValueError):
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        val = self.get_setting(key)
        if val is None:
            return default
        return bool(val)
