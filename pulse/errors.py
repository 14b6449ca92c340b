"""
pulse.errors — Exception Taxonomy
==================================

* Transient persistence failures surface as SQLAlchemy errors or
  :class:`PersistenceTimeout` and are handled by the dispatch adapter.
* Inconsistent voice state (leave without join, …) is never raised.
* Bad input from callers raises :class:`InvalidActivityInput` before
  anything is written.
"""

from __future__ import annotations

import asyncio


class PulseError(Exception):
    """Base class for Pulse-specific errors."""


class InvalidActivityInput(PulseError, ValueError):
    """An ID, duration, or XP amount that must never reach the database."""


class PersistenceTimeout(PulseError, TimeoutError):
    """A database call outlived its deadline.

    ``pending`` is the worker still running it; the caller has stopped
    waiting, but the write may yet commit.
    """

    def __init__(self, message: str, pending: asyncio.Future) -> None:
        super().__init__(message)
        self.pending = pending


def require_snowflake(name: str, value: object) -> int:
    """Return *value* if it is a positive integer ID, else raise."""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidActivityInput(f"{name} must be a positive integer ID, got {value!r}")
    return value


def require_non_negative(name: str, value: object) -> int:
    """Return *value* if it is an integer ``>= 0``, else raise."""
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidActivityInput(f"{name} must be a non-negative integer, got {value!r}")
    return value
