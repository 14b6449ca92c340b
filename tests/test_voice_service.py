"""
tests/test_voice_service.py — Voice Session Tracking Tests
===========================================================

Drives join/leave/switch sequences against SQLite and checks the
persisted session row and the per-channel voice seconds.
"""

from __future__ import annotations

import pytest

from pulse.engine.voice import VoiceTransition, classify_transition, session_seconds
from pulse.errors import InvalidActivityInput
from pulse.services import stats_service
from pulse.services.voice_service import apply_voice_change, get_open_session
from support import ALICE, BOB, GUILD, VOICE_A, VOICE_B, at

VOICE_C = 603


class TestClassifyTransition:
    @pytest.mark.parametrize(
        "old, new, expected",
        [
            (None, VOICE_A, VoiceTransition.JOIN),
            (VOICE_A, None, VoiceTransition.LEAVE),
            (VOICE_A, VOICE_B, VoiceTransition.SWITCH),
            (VOICE_A, VOICE_A, VoiceTransition.NOOP),
            (None, None, VoiceTransition.NOOP),
        ],
    )
    def test_transitions(self, old, new, expected):
        assert classify_transition(old, new) is expected

    def test_session_seconds_floors(self):
        assert session_seconds(at(0), at(59.9)) == 59

    def test_session_seconds_clock_skew(self):
        assert session_seconds(at(10), at(5)) == 0


class TestJoinLeave:
    def test_join_opens_session(self, db_engine):
        result = apply_voice_change(db_engine, GUILD, ALICE, None, VOICE_A, at(0))

        assert not result.flushed
        open_session = get_open_session(db_engine, GUILD, ALICE)
        assert open_session.channel_id == VOICE_A

    def test_join_then_leave_credits_elapsed(self, db_engine):
        apply_voice_change(db_engine, GUILD, ALICE, None, VOICE_A, at(0))
        result = apply_voice_change(db_engine, GUILD, ALICE, VOICE_A, None, at(300))

        assert result.channel_id == VOICE_A
        assert result.seconds == 300
        assert get_open_session(db_engine, GUILD, ALICE) is None

        member = stats_service.get_member_stats(db_engine, GUILD, ALICE)
        assert member.voice_seconds == 300
        assert member.voice_channels == {VOICE_A: 300}
        server = stats_service.get_server_stats(db_engine, GUILD)
        assert server.total_voice_seconds == 300

    def test_leave_without_session_is_harmless(self, db_engine):
        result = apply_voice_change(db_engine, GUILD, ALICE, VOICE_A, None, at(300))

        assert not result.flushed
        assert stats_service.get_member_stats(db_engine, GUILD, ALICE) is None

    def test_stale_join_replaces_session_without_credit(self, db_engine):
        apply_voice_change(db_engine, GUILD, ALICE, None, VOICE_A, at(0))
        apply_voice_change(db_engine, GUILD, ALICE, None, VOICE_B, at(500))

        open_session = get_open_session(db_engine, GUILD, ALICE)
        assert open_session.channel_id == VOICE_B
        assert stats_service.get_member_stats(db_engine, GUILD, ALICE) is None

        apply_voice_change(db_engine, GUILD, ALICE, VOICE_B, None, at(560))
        member = stats_service.get_member_stats(db_engine, GUILD, ALICE)
        assert member.voice_channels == {VOICE_B: 60}

    def test_noop_changes_nothing(self, db_engine):
        apply_voice_change(db_engine, GUILD, ALICE, None, VOICE_A, at(0))
        result = apply_voice_change(db_engine, GUILD, ALICE, VOICE_A, VOICE_A, at(100))

        assert not result.flushed
        assert get_open_session(db_engine, GUILD, ALICE).channel_id == VOICE_A
        assert stats_service.get_member_stats(db_engine, GUILD, ALICE) is None

    def test_clock_skew_credits_nothing(self, db_engine):
        apply_voice_change(db_engine, GUILD, ALICE, None, VOICE_A, at(100))
        result = apply_voice_change(db_engine, GUILD, ALICE, VOICE_A, None, at(40))

        assert not result.flushed
        assert get_open_session(db_engine, GUILD, ALICE) is None
        assert stats_service.get_member_stats(db_engine, GUILD, ALICE) is None

    def test_members_tracked_independently(self, db_engine):
        apply_voice_change(db_engine, GUILD, ALICE, None, VOICE_A, at(0))
        apply_voice_change(db_engine, GUILD, BOB, None, VOICE_A, at(30))
        apply_voice_change(db_engine, GUILD, ALICE, VOICE_A, None, at(90))

        assert get_open_session(db_engine, GUILD, BOB) is not None
        assert stats_service.get_member_stats(db_engine, GUILD, ALICE).voice_seconds == 90
        assert stats_service.get_member_stats(db_engine, GUILD, BOB) is None

    def test_invalid_ids_rejected(self, db_engine):
        with pytest.raises(InvalidActivityInput):
            apply_voice_change(db_engine, GUILD, 0, None, VOICE_A, at(0))


class TestSwitch:
    def test_switch_credits_each_channel(self, db_engine):
        apply_voice_change(db_engine, GUILD, ALICE, None, VOICE_A, at(0))
        first = apply_voice_change(db_engine, GUILD, ALICE, VOICE_A, VOICE_B, at(120))
        second = apply_voice_change(db_engine, GUILD, ALICE, VOICE_B, None, at(300))

        assert (first.channel_id, first.seconds) == (VOICE_A, 120)
        assert (second.channel_id, second.seconds) == (VOICE_B, 180)

        member = stats_service.get_member_stats(db_engine, GUILD, ALICE)
        assert member.voice_channels == {VOICE_B: 180, VOICE_A: 120}
        assert member.voice_seconds == 300

    def test_mismatched_old_channel_credits_session_channel(self, db_engine):
        apply_voice_change(db_engine, GUILD, ALICE, None, VOICE_A, at(0))
        result = apply_voice_change(db_engine, GUILD, ALICE, VOICE_C, VOICE_B, at(60))

        assert result.channel_id == VOICE_A
        member = stats_service.get_member_stats(db_engine, GUILD, ALICE)
        assert member.voice_channels == {VOICE_A: 60}
        assert get_open_session(db_engine, GUILD, ALICE).channel_id == VOICE_B

    def test_switch_without_session_opens_new_one(self, db_engine):
        result = apply_voice_change(db_engine, GUILD, ALICE, VOICE_A, VOICE_B, at(60))

        assert not result.flushed
        assert get_open_session(db_engine, GUILD, ALICE).channel_id == VOICE_B

    def test_many_switches_sum_to_wall_time(self, db_engine):
        channels = [VOICE_A, VOICE_B, VOICE_C] * 4
        apply_voice_change(db_engine, GUILD, ALICE, None, channels[0], at(0))
        clock = 0
        for previous, current in zip(channels, channels[1:]):
            clock += 45
            apply_voice_change(db_engine, GUILD, ALICE, previous, current, at(clock))
        clock += 45
        apply_voice_change(db_engine, GUILD, ALICE, channels[-1], None, at(clock))

        member = stats_service.get_member_stats(db_engine, GUILD, ALICE)
        assert member.voice_seconds == clock
        assert sum(member.voice_channels.values()) == clock
        assert member.voice_channels == {VOICE_A: 180, VOICE_B: 180, VOICE_C: 180}
