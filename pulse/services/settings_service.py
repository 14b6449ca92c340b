"""
pulse.services.settings_service — Nested Settings Store
=======================================================

Typed read/write access to the ``settings`` table, addressed by dotted
paths (``leveling.cooldown_ms``, ``guilds.<id>.leveling.channel``).

Every write is mirrored into the :class:`~pulse.engine.cache.ConfigCache`
so the progression engine sees it on the very next message.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete
from sqlalchemy.orm import Session

from pulse.database.engine import get_session
from pulse.database.models import Setting

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from pulse.engine.cache import ConfigCache

logger = logging.getLogger(__name__)

_MISSING = object()


def get_setting_value(session: Session, key: str, default=None):
    """Read a single setting's parsed value from an existing session.

    Returns *default* when the key does not exist.  A value that is not
    valid JSON is returned as the raw string.
    """
    row = session.get(Setting, key)
    if row is None:
        return default
    try:
        return json.loads(row.value_json)
    except (json.JSONDecodeError, TypeError):
        return row.value_json


def guild_key(guild_id: int, path: str) -> str:
    return f"guilds.{guild_id}.{path}"


class SettingsStore:
    """``get(path)`` / ``set(path, value)`` over the ``settings`` table.

    With a cache attached, reads are served from memory only: the cache
    holds every row after ``load_all`` and every write made through this
    store.  Without one, each read is a query.
    """

    def __init__(self, engine: Engine, cache: ConfigCache | None = None) -> None:
        self.engine = engine
        self.cache = cache

    def get(self, path: str, default: Any = None) -> Any:
        if self.cache is not None:
            return self.cache.get_setting(path, default)
        with Session(self.engine) as session:
            return get_setting_value(session, path, default)

    def set(
        self,
        path: str,
        value: Any,
        *,
        category: str | None = None,
        description: str | None = None,
    ) -> bool:
        """Store *value* at *path*.  Returns True once the value is stored.

        Writing the value a path already holds succeeds without touching
        the row.
        """
        value_json = json.dumps(value)
        with get_session(self.engine) as session:
            existing = session.get(Setting, path)
            if existing is not None and existing.value_json == value_json:
                if self.cache is not None:
                    self.cache.put(path, value)
                return True
            if existing is not None:
                existing.value_json = value_json
                if description is not None:
                    existing.description = description
            else:
                session.add(Setting(
                    key=path,
                    value_json=value_json,
                    category=category or path.split(".", 1)[0],
                    description=description,
                ))

        if self.cache is not None:
            self.cache.put(path, value)
        logger.info("Setting %s updated", path)
        return True

    def get_guild_setting(self, guild_id: int, path: str, default: Any = None) -> Any:
        """Guild override at ``guilds.<id>.<path>``, else the global *path*."""
        value = self.get(guild_key(guild_id, path), _MISSING)
        if value is not _MISSING:
            return value
        return self.get(path, default)


def delete_guild_settings(session: Session, guild_id: int) -> int:
    """Delete every ``guilds.<id>.*`` override in the caller's transaction."""
    result = session.execute(
        delete(Setting).where(Setting.key.startswith(guild_key(guild_id, ""), autoescape=True))
    )
    return result.rowcount or 0
