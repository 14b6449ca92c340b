"""
tests/support.py — IDs, clock and async helpers shared by the test modules
==========================================================================
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

GUILD = 100
OTHER_GUILD = 200
ALICE = 1001
BOB = 1002
CAROL = 1003
TEXT_A = 501
TEXT_B = 502
VOICE_A = 601
VOICE_B = 602

T0 = datetime(2026, 1, 15, 12, 0, 0, tzinfo=UTC)


def at(seconds: float) -> datetime:
    """``T0`` shifted by *seconds*."""
    return T0 + timedelta(seconds=seconds)


def run(coro):
    """Drive a coroutine to completion on a fresh event loop."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()
