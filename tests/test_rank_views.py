"""
tests/test_rank_views.py — /rank Data Loading & Channel Paging
===============================================================
"""

from __future__ import annotations

from pulse.bot.cogs.meta import CHANNELS_PER_PAGE, channel_pages, load_rank_data
from pulse.database.engine import get_session
from pulse.services import stats_service
from pulse.services.stats_service import ChannelCount
from support import ALICE, BOB, GUILD, TEXT_A, TEXT_B, VOICE_A


def _counts(n: int, base: int = 700) -> list[ChannelCount]:
    return [ChannelCount(base + i, 100 - i) for i in range(n)]


class TestChannelPages:
    def test_lockstep_driven_by_longer_list(self):
        text, voice = _counts(12), _counts(3, base=900)

        text_page, voice_page, index, total = channel_pages(text, voice, 2)

        assert (index, total) == (2, 3)
        assert [c.channel_id for c in text_page.entries] == [710, 711]
        assert voice_page.entries == []

    def test_first_page(self):
        text_page, voice_page, index, total = channel_pages(_counts(7), _counts(2, 900), 0)
        assert index == 0 and total == 2
        assert len(text_page.entries) == CHANNELS_PER_PAGE
        assert len(voice_page.entries) == 2

    def test_index_clamped(self):
        _, _, index, total = channel_pages(_counts(3), [], 8)
        assert (index, total) == (0, 1)

    def test_no_channels(self):
        text_page, voice_page, index, total = channel_pages([], [], 0)
        assert text_page.entries == [] and voice_page.entries == []
        assert total == 1


class TestLoadRankData:
    def test_unknown_member(self, db_engine):
        assert load_rank_data(db_engine, GUILD, ALICE) is None

    def test_collects_rank_and_channels(self, db_engine):
        stats_service.record_message(db_engine, GUILD, ALICE, TEXT_A)
        stats_service.record_message(db_engine, GUILD, ALICE, TEXT_B)
        stats_service.record_message(db_engine, GUILD, ALICE, TEXT_B)
        stats_service.apply_xp(db_engine, GUILD, ALICE, 40)
        stats_service.apply_xp(db_engine, GUILD, BOB, 80)
        with get_session(db_engine) as session:
            stats_service.record_voice_time(session, GUILD, ALICE, VOICE_A, 90)

        data = load_rank_data(db_engine, GUILD, ALICE)

        assert data.rank == 2
        assert data.stats.message_count == 3
        assert [c.channel_id for c in data.text_channels] == [TEXT_B, TEXT_A]
        assert data.voice_channels == [ChannelCount(VOICE_A, 90)]
