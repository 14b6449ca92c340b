"""
tests/test_constants.py — Level Curve & Formatting Helpers
===========================================================
"""

from __future__ import annotations

import pytest

from pulse.constants import (
    format_voice_time,
    level_for_xp,
    level_progress_fraction,
    rank_badge,
    total_xp_for_level,
    xp_required_for_level,
    xp_until_next_level,
)


class TestLevelCurve:
    """Exponential step cost with base 100 and growth 1.1."""

    def test_first_steps(self):
        assert xp_required_for_level(1) == 100
        assert xp_required_for_level(2) == 110
        assert xp_required_for_level(3) == 121
        assert xp_required_for_level(4) == 133

    def test_strictly_increasing(self):
        for level in range(1, 200):
            assert xp_required_for_level(level + 1) > xp_required_for_level(level)

    def test_level_below_one_rejected(self):
        with pytest.raises(ValueError):
            xp_required_for_level(0)

    def test_cumulative_totals(self):
        assert total_xp_for_level(1) == 0
        assert total_xp_for_level(2) == 100
        assert total_xp_for_level(3) == 210
        assert total_xp_for_level(4) == 331

    @pytest.mark.parametrize(
        "xp, level",
        [(0, 1), (99, 1), (100, 2), (209, 2), (210, 3), (331, 4)],
    )
    def test_level_for_xp(self, xp, level):
        assert level_for_xp(xp) == level

    def test_level_for_xp_inverts_totals(self):
        for level in range(1, 60):
            assert level_for_xp(total_xp_for_level(level)) == level

    def test_settings_override_curve(self, cache):
        cache.put("leveling.level_base", 50)
        cache.put("leveling.level_growth", 2.0)
        assert xp_required_for_level(1, cache) == 50
        assert xp_required_for_level(3, cache) == 200

    def test_flat_curve_falls_back_to_defaults(self, cache):
        cache.put("leveling.level_growth", 1.0)
        assert xp_required_for_level(2, cache) == 110


class TestProgressHelpers:
    def test_xp_until_next_level(self):
        assert xp_until_next_level(0, 1) == 100
        assert xp_until_next_level(150, 2) == 60

    def test_xp_until_next_level_never_negative(self):
        assert xp_until_next_level(10_000, 1) == 0

    def test_progress_fraction(self):
        assert level_progress_fraction(0, 1) == 0.0
        assert level_progress_fraction(50, 1) == pytest.approx(0.5)
        assert level_progress_fraction(155, 2) == pytest.approx(0.5)

    def test_progress_fraction_clamped(self):
        assert level_progress_fraction(10_000, 1) == 1.0
        assert level_progress_fraction(0, 5) == 0.0


class TestFormatting:
    @pytest.mark.parametrize(
        "seconds, expected",
        [
            (0, "0s"),
            (45, "45s"),
            (60, "1m"),
            (125, "2m 5s"),
            (3600, "1h"),
            (5400, "1h 30m"),
            (90061, "25h 1m"),
        ],
    )
    def test_format_voice_time(self, seconds, expected):
        assert format_voice_time(seconds) == expected

    def test_rank_badges(self):
        assert rank_badge(1) == "\U0001f947"
        assert rank_badge(3) == "\U0001f949"
        assert rank_badge(4) == "**4.**"
