"""
pulse.database.engine — Database Connection & Async Helpers
============================================================

Discord bots run on an ``asyncio`` event loop.  SQLAlchemy + psycopg2 is
**synchronous** — calling the DB directly from an async handler would
freeze the whole bot until the query returns.

The bridge:

    1. An event fires in Discord  (async world).
    2. The tracker calls ``await run_db_bounded(timeout, fn, *args)``.
    3. ``fn`` runs on the default thread pool via ``asyncio.to_thread()``.
    4. The event loop stays free; the result (or exception) is awaited back.

``run_db_bounded`` additionally stops waiting after *timeout* seconds so no
event handler can hang on a stuck connection.

Usage::

    from pulse.database.engine import create_db_engine, init_db, run_db

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …

    stats = await run_db(get_member_stats, engine, guild_id, user_id)
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session

from pulse.database.models import Base
from pulse.errors import PersistenceTimeout

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine() -> Engine:
    """Build a SQLAlchemy :class:`Engine` from the ``DATABASE_URL`` env var.

    Pool sizing for a small-to-medium community bot:
    * ``pool_size=5`` — five persistent connections.
    * ``max_overflow=10`` — up to 10 extra connections under load.
    * ``pool_timeout=10`` — fail after 10 s if no connection is available.
    * ``pool_recycle=3600`` — recycle connections after 1 hour.

    Raises
    ------
    RuntimeError
        If ``DATABASE_URL`` is not set.
    """
    url = os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a valid PostgreSQL URL."
        )

    engine = create_engine(
        url,
        echo=False,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_timeout=10,
        pool_recycle=3600,
    )
    logger.info("Database engine created → %s", engine.url.host)
    return engine


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Create all tables and seed default settings.

    Safe to call on every startup.  In production the schema is managed by
    Alembic (``alembic upgrade head``); ``create_all`` stays as a safety net
    for dev/test environments.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")

    from pulse.database.seed import seed_default_settings

    seed_default_settings(engine)


# ---------------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine):
    """Yield a :class:`Session` that commits on success and rolls back on error.

    Usage::

        with get_session(engine) as session:
            session.add(VoiceSession(...))
    """
    session = Session(engine)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Run a **synchronous** database function on a background thread.

    Read-side helpers (rank, leaderboard pages) go through this directly.
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def run_db_bounded(
    timeout: float, func: Callable[P, T], *args: P.args, **kwargs: P.kwargs
) -> T:
    """Like :func:`run_db`, but give up after *timeout* seconds.

    Raises :class:`~pulse.errors.PersistenceTimeout` when the deadline
    passes.  The worker thread cannot be interrupted; its transaction still
    commits or rolls back on its own.  The exception carries the worker's
    future as ``pending`` so callers can keep a resource held until the
    worker is really done.
    """
    name = getattr(func, "__name__", repr(func))
    worker = asyncio.ensure_future(asyncio.to_thread(func, *args, **kwargs))
    try:
        return await asyncio.wait_for(asyncio.shield(worker), timeout)
    except asyncio.TimeoutError:
        worker.add_done_callback(lambda fut: _log_abandoned(name, fut))
        raise PersistenceTimeout(f"{name} exceeded {timeout:g}s", worker) from None


def _log_abandoned(name: str, fut: asyncio.Future) -> None:
    """Report the outcome of a worker nobody is waiting on any more."""
    if fut.cancelled():
        return
    exc = fut.exception()
    if exc is not None:
        logger.error("%s failed after its deadline: %s", name, exc)
    else:
        logger.warning("%s finished after its deadline", name)
