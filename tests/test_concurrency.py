"""
tests/test_concurrency.py — Concurrent Ledger Access
=====================================================
Threads hammer a file-backed SQLite database (real connection pool, writers
serialized by ``BEGIN IMMEDIATE``) and the ledger invariants must hold.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

from conftest import balances, seed_account
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from coinvault.config import CoinVaultConfig
from coinvault.database.models import RewardLog, RewardType, Transaction
from coinvault.engine.events import RewardClaim
from coinvault.errors import AlreadyClaimedError, DailyLimitReachedError, LedgerError
from coinvault.services import reward_service, tip_service

CONFIG = CoinVaultConfig(lock_timeout_ms=10000)


def _run_concurrently(fn, count: int) -> list:
    barrier = threading.Barrier(count)

    def worker(i):
        barrier.wait()
        try:
            return fn(i)
        except LedgerError as exc:
            return exc

    with ThreadPoolExecutor(max_workers=count) as pool:
        return list(pool.map(worker, range(count)))


class TestConcurrentRewards:
    def test_same_claim_granted_exactly_once(self, file_engine):
        claim = RewardClaim(
            account_id="u1",
            reward_type=RewardType.PROMO_VIEW,
            content_id="promo-1",
            requested_amount=5,
        )
        results = _run_concurrently(
            lambda i: reward_service.issue_reward(file_engine, CONFIG, claim), 8
        )

        granted = [r for r in results if isinstance(r, reward_service.RewardResult)]
        rejected = [r for r in results if isinstance(r, AlreadyClaimedError)]
        assert len(granted) == 1
        assert len(rejected) == 7
        assert balances(file_engine, "u1") == (0, 5)
        with Session(file_engine) as session:
            assert session.scalar(select(func.count()).select_from(RewardLog)) == 1

    def test_daily_cap_never_exceeded(self, file_engine):
        def claim(i):
            return reward_service.issue_reward(
                file_engine,
                CONFIG,
                RewardClaim(
                    account_id="u1",
                    reward_type=RewardType.TASK_COMPLETE,
                    content_id=f"task-{i}",
                    requested_amount=15,
                ),
            )

        results = _run_concurrently(claim, 10)
        granted = sum(r.amount for r in results if isinstance(r, reward_service.RewardResult))
        assert granted == 100
        assert all(
            isinstance(r, reward_service.RewardResult | DailyLimitReachedError)
            for r in results
        )
        assert balances(file_engine, "u1") == (0, 100)


class TestConcurrentTips:
    def test_opposite_direction_tips_conserve_total(self, file_engine):
        seed_account(file_engine, "alice", vicoin=100)
        seed_account(file_engine, "bob", vicoin=100)

        def tip(i):
            if i % 2:
                return tip_service.tip_creator(
                    file_engine, CONFIG, "alice", "bob", "c", 7, "vicoin"
                )
            return tip_service.tip_creator(
                file_engine, CONFIG, "bob", "alice", "c", 3, "vicoin"
            )

        results = _run_concurrently(tip, 10)
        assert not [r for r in results if isinstance(r, LedgerError)]
        alice, _ = balances(file_engine, "alice")
        bob, _ = balances(file_engine, "bob")
        assert alice + bob == 200
        assert alice == 100 - 5 * 7 + 5 * 3

    def test_overdraft_race_never_goes_negative(self, file_engine):
        seed_account(file_engine, "alice", vicoin=50)
        seed_account(file_engine, "bob")

        results = _run_concurrently(
            lambda i: tip_service.tip_creator(
                file_engine, CONFIG, "alice", "bob", "c", 20, "vicoin"
            ),
            5,
        )
        succeeded = [r for r in results if isinstance(r, tip_service.TipResult)]
        assert len(succeeded) == 2
        assert balances(file_engine, "alice") == (10, 0)
        assert balances(file_engine, "bob") == (40, 0)
        with Session(file_engine) as session:
            assert session.scalar(select(func.count()).select_from(Transaction)) == 4
