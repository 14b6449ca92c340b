"""
tests/test_settings.py — Settings Store, Seeder & Cache Tests
==============================================================
"""

from __future__ import annotations

import json

import pytest
from sqlalchemy.orm import Session

from pulse.database.models import Setting
from pulse.database.seed import DEFAULT_SETTINGS, seed_default_settings
from pulse.engine.cache import ConfigCache
from pulse.engine.progression import ProgressionEngine
from pulse.services.settings_service import (
    SettingsStore,
    delete_guild_settings,
    get_setting_value,
    guild_key,
)
from support import GUILD, OTHER_GUILD


@pytest.fixture
def seeded_cache(db_engine) -> ConfigCache:
    seed_default_settings(db_engine)
    cache = ConfigCache(db_engine)
    cache.load_all()
    return cache


class TestSeeder:
    def test_seeds_every_default_once(self, db_engine):
        assert seed_default_settings(db_engine) == len(DEFAULT_SETTINGS)
        assert seed_default_settings(db_engine) == 0

    def test_does_not_overwrite_changes(self, db_engine):
        seed_default_settings(db_engine)
        SettingsStore(db_engine).set("leveling.xp_min", 5)

        seed_default_settings(db_engine)

        with Session(db_engine) as session:
            assert get_setting_value(session, "leveling.xp_min") == 5


class TestConfigCache:
    def test_load_all_parses_json(self, seeded_cache):
        assert seeded_cache.get_int("leveling.xp_max") == 25
        assert seeded_cache.get_float("leveling.level_growth") == pytest.approx(1.1)
        assert seeded_cache.get_bool("leveling.enabled") is True
        assert seeded_cache.get_setting("leveling.channel", "absent") is None

    def test_typed_getters_fall_back(self, cache):
        cache.put("weird", "not-a-number")
        assert cache.get_int("weird", 7) == 7
        assert cache.get_float("missing", 2.5) == 2.5
        assert cache.get_bool("missing", True) is True

    def test_unparseable_row_kept_as_string(self, db_engine):
        with Session(db_engine) as session:
            session.add(Setting(key="legacy.note", value_json="plain text", category="legacy"))
            session.commit()
        cache = ConfigCache(db_engine)
        cache.load_all()
        assert cache.get_setting("legacy.note") == "plain text"

    def test_without_engine_load_is_noop(self, cache):
        cache.load_all()
        assert cache.get_setting("leveling.xp_min") is None


class TestSettingsStore:
    def test_set_and_get_without_cache(self, db_engine):
        store = SettingsStore(db_engine)
        assert store.set("leveling.channel", 4242)
        assert store.get("leveling.channel") == 4242
        assert store.get("nope", "fallback") == "fallback"

    def test_rewriting_same_value_succeeds(self, db_engine, cache):
        store = SettingsStore(db_engine, cache)
        assert store.set("leveling.enabled", False)
        assert store.set("leveling.enabled", False)
        assert store.get("leveling.enabled") is False
        assert SettingsStore(db_engine).get("leveling.enabled") is False

    def test_delete_guild_settings_scoped_to_guild(self, db_engine):
        store = SettingsStore(db_engine)
        store.set("leveling.channel", 1)
        store.set(guild_key(GUILD, "leveling.channel"), 2)
        store.set(guild_key(GUILD, "leveling.enabled"), False)
        # Shares the "guilds.100" text but belongs to another guild
        store.set(guild_key(GUILD * 10, "leveling.channel"), 3)

        with Session(db_engine) as session:
            assert delete_guild_settings(session, GUILD) == 2
            session.commit()

        assert store.get(guild_key(GUILD, "leveling.channel")) is None
        assert store.get(guild_key(GUILD * 10, "leveling.channel")) == 3
        assert store.get("leveling.channel") == 1

    def test_category_from_first_segment(self, db_engine):
        SettingsStore(db_engine).set("display.theme", {"accent": "teal"})
        with Session(db_engine) as session:
            row = session.get(Setting, "display.theme")
            assert row.category == "display"
            assert json.loads(row.value_json) == {"accent": "teal"}

    def test_writes_reach_cache_and_progression(self, db_engine, seeded_cache):
        store = SettingsStore(db_engine, seeded_cache)
        progression = ProgressionEngine(seeded_cache)
        assert progression.cooldown_seconds == 1.0

        store.set("leveling.cooldown_ms", 2500)

        assert seeded_cache.get_int("leveling.cooldown_ms") == 2500
        assert progression.cooldown_seconds == 2.5

    def test_guild_override(self, db_engine, seeded_cache):
        store = SettingsStore(db_engine, seeded_cache)
        store.set(guild_key(GUILD, "leveling.enabled"), False)

        assert store.get_guild_setting(GUILD, "leveling.enabled") is False
        assert store.get_guild_setting(OTHER_GUILD, "leveling.enabled") is True

    def test_guild_override_of_none_is_respected(self, db_engine, seeded_cache):
        store = SettingsStore(db_engine, seeded_cache)
        store.set("leveling.channel", 777)
        store.set(guild_key(GUILD, "leveling.channel"), None)

        assert store.get_guild_setting(GUILD, "leveling.channel") is None
        assert store.get_guild_setting(OTHER_GUILD, "leveling.channel") == 777

    def test_guild_key_format(self):
        assert guild_key(GUILD, "leveling.channel") == f"guilds.{GUILD}.leveling.channel"
