"""
coinvault.database.engine — Database Connection & Async Helper
===============================================================

SQLAlchemy + psycopg2 is **synchronous**.  FastAPI routes are ``async``, so
every ledger call is shipped to a worker thread with :func:`run_db`, keeping
the event loop free while a request waits on a row lock.

Usage::

    from coinvault.database.engine import create_db_engine, init_db, run_db

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …

    # Inside an async route:
    result = await run_db(issue_reward, engine, cfg, claim)
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine, event

from coinvault.database.models import Base

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


# ---------------------------------------------------------------------------
# SQLite transaction handling
# ---------------------------------------------------------------------------
def configure_sqlite_transactions(engine: Engine) -> None:
    """Make SQLite take the write lock at BEGIN.

    pysqlite defers BEGIN until the first DML statement and mishandles
    SAVEPOINT.  Emitting ``BEGIN IMMEDIATE`` ourselves serializes writers for
    the whole unit, which is what the ledger's read-check-write units need.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine(url: str | None = None, *, lock_timeout_s: float = 5.0) -> Engine:
    """Build a SQLAlchemy :class:`Engine` from *url* or ``DATABASE_URL``.

    PostgreSQL pool sizing:
    * ``pool_size=5`` — five persistent connections.
    * ``max_overflow=10`` — up to 10 extra connections under load.
    * ``pool_timeout=10`` — fail after 10 s if no connection is available.
    * ``pool_recycle=3600`` — recycle connections after 1 hour.

    SQLite URLs (dev/test) get a busy timeout of *lock_timeout_s* and
    ``BEGIN IMMEDIATE`` transactions.

    Raises
    ------
    RuntimeError
        If neither *url* nor ``DATABASE_URL`` is set.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a valid PostgreSQL URL."
        )

    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False, "timeout": lock_timeout_s},
        )
        configure_sqlite_transactions(engine)
        logger.info("SQLite engine created → %s", engine.url.database)
        return engine

    engine = create_engine(
        url,
        echo=False,        # Set True for SQL debugging
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,   # Reconnect stale connections automatically
        pool_timeout=10,      # Fail after 10s instead of hanging forever
        pool_recycle=3600,    # Recycle connections after 1 hour
    )
    logger.info("Database engine created → %s", engine.url.host)
    return engine


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Create all tables defined in :mod:`coinvault.database.models`.

    .. note::

        In production the schema is managed by Alembic (``alembic upgrade
        head``).  ``create_all`` is retained as a safety net for dev/test
        environments where Alembic may not have run.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Run a **synchronous** database function on a background thread.

    Under the hood it calls :func:`asyncio.to_thread`, which schedules
    *func* on the default ``ThreadPoolExecutor`` so the event loop is never
    blocked by lock waits.
    """
    return await asyncio.to_thread(func, *args, **kwargs)
