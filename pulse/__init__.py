"""
Pulse — Member Activity & Progression Tracking for Discord
===========================================================
Turns message and voice presence events into durable per-guild,
per-member counters (messages per channel, voice time per channel,
XP, levels) and serves them back as ranks and paginated leaderboards.

Package layout::

    pulse/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Level curve + presentation helpers
    ├── errors.py          # Exception taxonomy
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helpers
    │   ├── models.py      # ORM models (stats, voice sessions, settings)
    │   └── seed.py        # Default settings seeder
    ├── engine/
    │   ├── events.py      # MessageEvent / VoiceStateEvent envelopes
    │   ├── progression.py # Cooldown store + XP grant policy
    │   ├── voice.py       # Voice transition classifier
    │   └── cache.py       # In-memory settings cache
    ├── services/
    │   ├── stats_service.py       # Aggregate store (atomic upserts)
    │   ├── voice_service.py       # Persisted voice session tracker
    │   ├── leaderboard_service.py # Rank, pages, channel breakdowns
    │   ├── settings_service.py    # get(path) / set(path, value)
    │   ├── tracker.py             # Event dispatch adapter
    │   └── embeds.py              # Discord embed builders
    └── bot/
        ├── core.py        # Bot subclass, cog loader
        └── cogs/
            ├── social.py      # on_message → XP + text stats
            ├── voice.py       # on_voice_state_update → voice time
            ├── membership.py  # member / guild removal cleanup
            └── meta.py        # /rank, /activity-leaderboard
"""

__version__ = "0.1.0"
