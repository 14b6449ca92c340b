"""
pulse.bot.__main__ — Entry point for ``python -m pulse.bot``
============================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (infrastructure settings).
3. Create the SQLAlchemy engine, ensure tables exist, seed default settings.
4. Build and warm the ConfigCache (gameplay settings from DB).
5. Create the PulseBot and hand it config + engine + cache.
6. Start the bot (blocking; runs the asyncio event loop).

Run with::

    python -m pulse.bot
"""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv

from pulse.bot.core import PulseBot
from pulse.config import load_config
from pulse.database.engine import create_db_engine, init_db
from pulse.engine.cache import ConfigCache

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("pulse")


def main() -> None:
    """Bootstrap and run the Pulse bot."""

    # 1. Environment variables (secrets).
    load_dotenv()

    token = os.getenv("DISCORD_TOKEN")
    if not token or token == "your-discord-bot-token-here":
        logger.critical(
            "DISCORD_TOKEN is not set.  "
            "Copy .env.example → .env and paste your bot token."
        )
        sys.exit(1)

    if os.getenv("PULSE_DEBUG"):
        logging.getLogger("pulse").setLevel(logging.DEBUG)

    # 2. Infrastructure configuration.
    cfg = load_config(os.getenv("PULSE_CONFIG", "config.yaml"))
    logger.info("Config loaded — Community: %s", cfg.community_name)

    # 3. Database (tables + default settings, idempotent).
    engine = create_db_engine()
    init_db(engine)

    # 4. Build and warm the ConfigCache.
    cache = ConfigCache(engine)
    cache.load_all()

    # 5. Bot.
    bot = PulseBot(cfg=cfg, engine=engine, cache=cache)

    # 6. Run (blocks until Ctrl+C or SIGTERM).
    logger.info("Starting Pulse bot…")
    try:
        bot.run(token, log_handler=None)
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")


if __name__ == "__main__":
    main()
