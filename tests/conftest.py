"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os
import random

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of coinvault.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively, but SQLAlchemy's JSON type works.
# We register a custom type compiler so SQLite renders JSONB as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from coinvault.config import CoinVaultConfig  # noqa: E402
from coinvault.database.engine import (  # noqa: E402
    configure_sqlite_transactions,
    create_db_engine,
    init_db,
)
from coinvault.database.models import Account, Base  # noqa: E402

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent)."""
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all CoinVault tables.

    JSONB columns are transparently mapped to TEXT for SQLite compatibility.
    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used by the API routes).  Only one
    session may be open at a time against it.
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_sqlite_transactions(engine)
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def file_engine(tmp_path) -> Engine:
    """File-backed SQLite with a real connection pool, for threaded tests.

    Writers serialize on ``BEGIN IMMEDIATE`` and wait up to 10 s for the lock.
    """
    engine = create_db_engine(f"sqlite:///{tmp_path / 'ledger.db'}", lock_timeout_s=10.0)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def config() -> CoinVaultConfig:
    return CoinVaultConfig()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


def seed_account(
    engine: Engine,
    account_id: str,
    *,
    vicoin: int = 0,
    icoin: int = 0,
    kyc_status: str = "none",
) -> None:
    """Insert an account with the given balances (and no journal rows)."""
    with Session(engine) as session, session.begin():
        session.add(Account(
            id=account_id,
            vicoin_balance=vicoin,
            icoin_balance=icoin,
            kyc_status=kyc_status,
        ))


def balances(engine: Engine, account_id: str) -> tuple[int, int]:
    """``(vicoin, icoin)`` for an account; ``(0, 0)`` if missing."""
    with Session(engine) as session:
        account = session.get(Account, account_id)
        if account is None:
            return 0, 0
        return account.vicoin_balance, account.icoin_balance


def make_token(sub: str = "acct-1", **claims) -> str:
    """Create a bearer JWT for *sub*.  Usable from tests and fixtures."""
    import jwt

    from coinvault.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode({"sub": sub, **claims}, JWT_SECRET, algorithm=JWT_ALGORITHM)


def make_service_token(sub: str = "ad-server") -> str:
    return make_token(sub, is_service=True)
