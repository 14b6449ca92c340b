"""
tests/test_config.py — YAML Config Loader Tests
================================================
"""

from __future__ import annotations

import pytest

from pulse.config import load_config


def _write(tmp_path, body: str):
    path = tmp_path / "config.yaml"
    path.write_text(body, encoding="utf-8")
    return path


def test_minimal_config_uses_defaults(tmp_path):
    cfg = load_config(_write(tmp_path, "community_name: Test\nbot_prefix: '!'\n"))
    assert cfg.community_name == "Test"
    assert cfg.bot_prefix == "!"
    assert cfg.db_timeout_seconds == 5.0
    assert cfg.leaderboard_page_size == 10


def test_overrides(tmp_path):
    cfg = load_config(_write(
        tmp_path,
        "community_name: Test\nbot_prefix: '?'\n"
        "db_timeout_seconds: 2.5\nleaderboard_page_size: 25\nview_timeout_seconds: 60\n",
    ))
    assert cfg.db_timeout_seconds == 2.5
    assert cfg.leaderboard_page_size == 25
    assert cfg.view_timeout_seconds == 60.0


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.yaml")


def test_missing_required_key(tmp_path):
    with pytest.raises(KeyError):
        load_config(_write(tmp_path, "community_name: Test\n"))


@pytest.mark.parametrize(
    "extra", ["db_timeout_seconds: 0\n", "leaderboard_page_size: 0\n"],
)
def test_out_of_range_values(tmp_path, extra):
    with pytest.raises(ValueError):
        load_config(_write(tmp_path, "community_name: Test\nbot_prefix: '!'\n" + extra))
