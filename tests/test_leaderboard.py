"""
tests/test_leaderboard.py — Rank, Pagination & Channel Ordering Tests
======================================================================
"""

from __future__ import annotations

import pytest

from pulse.database.engine import get_session
from pulse.services import leaderboard_service as lb
from pulse.services import stats_service
from support import ALICE, BOB, CAROL, GUILD, OTHER_GUILD, TEXT_A, TEXT_B, VOICE_A, VOICE_B

DAVE = 1004


def _seed_xp(engine, amounts: dict[int, int], guild_id: int = GUILD) -> None:
    for user_id, amount in amounts.items():
        stats_service.apply_xp(engine, guild_id, user_id, amount)


class TestPagination:
    @pytest.mark.parametrize(
        "requested, count, size, expected",
        [
            (0, 0, 10, (0, 1)),
            (5, 0, 10, (0, 1)),
            (-3, 25, 10, (0, 3)),
            (2, 25, 10, (2, 3)),
            (9, 25, 10, (2, 3)),
            (1, 20, 10, (1, 2)),
        ],
    )
    def test_clamp_page(self, requested, count, size, expected):
        assert lb.clamp_page(requested, count, size) == expected

    def test_zero_page_size_rejected(self):
        with pytest.raises(ValueError):
            lb.clamp_page(0, 10, 0)

    def test_paginate_slices(self):
        page = lb.paginate(list(range(12)), 1, page_size=5)
        assert page.entries == [5, 6, 7, 8, 9]
        assert page.total_pages == 3
        assert not page.is_first
        assert not page.is_last

    def test_paginate_clamps_past_end(self):
        page = lb.paginate(list(range(12)), 10, page_size=5)
        assert page.page_index == 2
        assert page.entries == [10, 11]
        assert page.is_last

    def test_paginate_empty(self):
        page = lb.paginate([], 3)
        assert page.entries == []
        assert page.total_pages == 1
        assert page.is_first and page.is_last


class TestRanking:
    def test_rank_by_level_then_xp(self, db_engine):
        # 400 XP is level 4; 250 XP is level 3
        _seed_xp(db_engine, {ALICE: 250, BOB: 400, CAROL: 300})

        assert lb.get_rank(db_engine, GUILD, BOB) == 1
        assert lb.get_rank(db_engine, GUILD, CAROL) == 2
        assert lb.get_rank(db_engine, GUILD, ALICE) == 3

    def test_ties_resolve_by_first_activity(self, db_engine):
        _seed_xp(db_engine, {CAROL: 150, ALICE: 150, BOB: 150})

        ranks = [lb.get_rank(db_engine, GUILD, uid) for uid in (CAROL, ALICE, BOB)]
        assert ranks == [1, 2, 3]
        page = lb.get_page(db_engine, GUILD, 0)
        assert [e.user_id for e in page.entries] == [CAROL, ALICE, BOB]

    def test_positions_are_a_permutation(self, db_engine):
        _seed_xp(db_engine, {ALICE: 100, BOB: 100, CAROL: 50, DAVE: 500})
        ranks = sorted(lb.get_rank(db_engine, GUILD, uid) for uid in (ALICE, BOB, CAROL, DAVE))
        assert ranks == [1, 2, 3, 4]

    def test_unknown_member_has_no_rank(self, db_engine):
        _seed_xp(db_engine, {ALICE: 100})
        assert lb.get_rank(db_engine, GUILD, BOB) is None

    def test_guilds_ranked_separately(self, db_engine):
        _seed_xp(db_engine, {ALICE: 10})
        _seed_xp(db_engine, {BOB: 999}, guild_id=OTHER_GUILD)
        assert lb.get_rank(db_engine, GUILD, ALICE) == 1


class TestLeaderboardPage:
    def test_page_contents_and_positions(self, db_engine):
        _seed_xp(db_engine, {ALICE: 50, BOB: 40, CAROL: 30, DAVE: 20})

        page = lb.get_page(db_engine, GUILD, 1, page_size=3)

        assert page.page_index == 1
        assert page.total_pages == 2
        assert page.total_count == 4
        assert [(e.position, e.user_id, e.xp) for e in page.entries] == [(4, DAVE, 20)]

    def test_page_index_clamped(self, db_engine):
        _seed_xp(db_engine, {ALICE: 50, BOB: 40})
        page = lb.get_page(db_engine, GUILD, 99, page_size=1)
        assert page.page_index == 1
        assert page.entries[0].user_id == BOB

    def test_empty_guild(self, db_engine):
        page = lb.get_page(db_engine, GUILD, 0)
        assert page.entries == []
        assert page.total_pages == 1

    def test_entries_carry_activity(self, db_engine):
        stats_service.record_message(db_engine, GUILD, ALICE, TEXT_A)
        stats_service.apply_xp(db_engine, GUILD, ALICE, 20)

        entry = lb.get_page(db_engine, GUILD, 0).entries[0]
        assert entry.message_count == 1
        assert entry.level == 1
        assert entry.voice_seconds == 0


class TestChannelBreakdowns:
    def test_member_channels_ordered_by_count_then_id(self, db_engine):
        for channel in (TEXT_B, TEXT_A, TEXT_A, TEXT_B):
            stats_service.record_message(db_engine, GUILD, ALICE, channel)

        channels = lb.get_member_text_channels_sorted(db_engine, GUILD, ALICE)
        assert [(c.channel_id, c.count) for c in channels] == [(TEXT_A, 2), (TEXT_B, 2)]

    def test_member_voice_channels(self, db_engine):
        with get_session(db_engine) as session:
            stats_service.record_voice_time(session, GUILD, ALICE, VOICE_A, 60)
            stats_service.record_voice_time(session, GUILD, ALICE, VOICE_B, 90)

        channels = lb.get_member_voice_channels_sorted(db_engine, GUILD, ALICE)
        assert [c.channel_id for c in channels] == [VOICE_B, VOICE_A]
        assert lb.get_member_text_channels_sorted(db_engine, GUILD, ALICE) == []

    def test_server_channels(self, db_engine):
        stats_service.record_message(db_engine, GUILD, ALICE, TEXT_B)
        stats_service.record_message(db_engine, GUILD, BOB, TEXT_B)
        stats_service.record_message(db_engine, GUILD, BOB, TEXT_A)

        text = lb.get_server_text_channels_sorted(db_engine, GUILD)
        assert [(c.channel_id, c.count) for c in text] == [(TEXT_B, 2), (TEXT_A, 1)]
        assert lb.get_server_voice_channels_sorted(db_engine, GUILD) == []

    def test_server_board_limits_each_kind(self, db_engine):
        for channel in range(700, 708):
            stats_service.record_message(db_engine, GUILD, ALICE, channel)
        with get_session(db_engine) as session:
            stats_service.record_voice_time(session, GUILD, ALICE, VOICE_A, 30)

        board = lb.get_server_channel_board(db_engine, GUILD, top=5)
        assert [c.channel_id for c in board.text] == [700, 701, 702, 703, 704]
        assert [c.channel_id for c in board.voice] == [VOICE_A]
        assert not board.is_empty

    def test_server_board_empty(self, db_engine):
        assert lb.get_server_channel_board(db_engine, GUILD).is_empty
