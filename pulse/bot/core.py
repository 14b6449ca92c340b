"""
pulse.bot.core — Bot Instance & Cog Loader
==========================================

Defines :class:`PulseBot`, a ``commands.Bot`` subclass that:

1. Carries the shared config (``bot.cfg``), DB engine (``bot.engine``) and
   settings cache (``bot.cache``) so every Cog can reach them.
2. Owns the single :class:`ActivityTracker` (``bot.tracker``) that all
   listener cogs feed, and with it the XP cooldown store.
3. Loads every Cog in :data:`EXTENSIONS` on startup.
4. Syncs the slash-command tree on ready (guild-scoped for dev, global for
   production, controlled by the ``DEV_GUILD_ID`` env var).
"""

from __future__ import annotations

import logging
import os

import discord
from discord.ext import commands
from sqlalchemy import Engine

from pulse.config import PulseConfig
from pulse.engine.cache import ConfigCache
from pulse.engine.progression import ProgressionEngine
from pulse.services.settings_service import SettingsStore
from pulse.services.tracker import ActivityTracker

logger = logging.getLogger(__name__)

# Cog modules to load on startup.
EXTENSIONS: list[str] = [
    "pulse.bot.cogs.social",
    "pulse.bot.cogs.voice",
    "pulse.bot.cogs.membership",
    "pulse.bot.cogs.meta",
]


class PulseBot(commands.Bot):
    """Custom Bot subclass that carries project-wide state.

    Parameters
    ----------
    cfg:
        The parsed :class:`PulseConfig` from ``config.yaml``.
    engine:
        A SQLAlchemy :class:`Engine` for the aggregate store.
    cache:
        The warmed :class:`ConfigCache`.
    """

    def __init__(self, cfg: PulseConfig, engine: Engine, cache: ConfigCache) -> None:
        # GUILD_VOICE_STATES and GUILD_MESSAGES are in default(); MEMBERS is
        # privileged and needed for on_member_remove.  Message content is
        # not needed: only authorship and channel are counted.
        intents = discord.Intents.default()
        intents.members = True
        intents.presences = False

        super().__init__(
            command_prefix=cfg.bot_prefix,
            intents=intents,
            description=f"{cfg.community_name} activity tracker",
        )

        self.cfg = cfg
        self.engine = engine
        self.cache = cache
        self.settings = SettingsStore(engine, cache)
        self.progression = ProgressionEngine(cache)
        self.tracker = ActivityTracker(
            engine,
            self.progression,
            cache,
            db_timeout=cfg.db_timeout_seconds,
        )

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Load all Cog extensions.  One broken Cog does not stop the rest."""
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except Exception as exc:
                logger.error("Failed to load extension %s: %s", ext, exc)

    async def on_ready(self) -> None:
        """Fired when the bot has connected and the cache is populated."""
        assert self.user is not None  # guaranteed after on_ready
        logger.info("Logged in as %s (ID: %s)", self.user.name, self.user.id)

        dev_guild_id = os.getenv("DEV_GUILD_ID")
        if dev_guild_id:
            guild = discord.Object(id=int(dev_guild_id))
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
            logger.info("Synced %d commands to dev guild %s", len(synced), dev_guild_id)
        else:
            synced = await self.tree.sync()
            logger.info("Synced %d commands globally", len(synced))

    async def close(self) -> None:
        logger.info("Bot shutting down…")
        await super().close()
