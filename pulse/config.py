"""
pulse.config — YAML Configuration Loader
=========================================

Reads ``config.yaml`` for **infrastructure-only** settings (Discord
identity, DB timeouts, leaderboard presentation).  Gameplay tuning values
(XP range, cooldown, level curve, level-up notices) live in the
``settings`` database table and are read through
:class:`~pulse.engine.cache.ConfigCache`.

Usage::

    from pulse.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.community_name)    # "Pulse Dev"
    print(cfg.db_timeout_seconds)
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object — infrastructure/identity only.
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class PulseConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    community_name: str

    # Discord
    bot_prefix: str

    # Database — upper bound for a single persistence call from the bot
    db_timeout_seconds: float = 5.0

    # Leaderboard presentation
    leaderboard_page_size: int = 10
    view_timeout_seconds: float = 300.0


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> PulseConfig:
    """Read *path* and return a :class:`PulseConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    ValueError
        If a numeric value is out of range.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    cfg = PulseConfig(
        community_name=raw["community_name"],
        bot_prefix=raw["bot_prefix"],
        db_timeout_seconds=float(raw.get("db_timeout_seconds", 5.0)),
        leaderboard_page_size=int(raw.get("leaderboard_page_size", 10)),
        view_timeout_seconds=float(raw.get("view_timeout_seconds", 300.0)),
    )
    if cfg.db_timeout_seconds <= 0:
        raise ValueError("db_timeout_seconds must be positive")
    if cfg.leaderboard_page_size < 1:
        raise ValueError("leaderboard_page_size must be at least 1")
    return cfg
