"""
tests/test_daily_cap.py — Daily Cap Tracker Tests
==================================================
"""

from __future__ import annotations

from datetime import date

import pytest

from coinvault.database.models import CoinType
from coinvault.errors import DailyLimitReachedError
from coinvault.services import daily_cap
from coinvault.services.ledger_service import atomic_unit, lock_account

DAY = date(2026, 3, 1)
LIMITS = {"icoin": 100, "vicoin": 50}


def _reserve(engine, requested, *, coin=CoinType.ICOIN, day=DAY, limit=100):
    with atomic_unit(engine) as session:
        lock_account(session, "u1")
        return daily_cap.reserve_earning(session, "u1", day, coin, requested, limit)


class TestReserveEarning:
    def test_grants_in_full_below_limit(self, db_engine):
        assert _reserve(db_engine, 30) == 30
        usage = daily_cap.daily_usage(
            db_engine, "u1", daily_limits=LIMITS, promo_view_limit=20, day=DAY
        )
        assert usage["earned"]["icoin"] == 30
        assert usage["remaining"]["icoin"] == 70

    def test_clamps_to_remaining(self, db_engine):
        assert _reserve(db_engine, 95) == 95
        assert _reserve(db_engine, 10) == 5

    def test_raises_when_exhausted(self, db_engine):
        _reserve(db_engine, 100)
        with pytest.raises(DailyLimitReachedError) as exc_info:
            _reserve(db_engine, 1)
        assert exc_info.value.detail["limit"] == 100
        assert exc_info.value.detail["earned_today"] == 100

    def test_coins_tracked_independently(self, db_engine):
        _reserve(db_engine, 100)
        assert _reserve(db_engine, 20, coin=CoinType.VICOIN, limit=50) == 20

    def test_new_day_starts_fresh(self, db_engine):
        _reserve(db_engine, 100)
        assert _reserve(db_engine, 40, day=date(2026, 3, 2)) == 40

    def test_failed_unit_does_not_consume_allowance(self, db_engine):
        with pytest.raises(RuntimeError):
            with atomic_unit(db_engine) as session:
                lock_account(session, "u1")
                daily_cap.reserve_earning(session, "u1", DAY, CoinType.ICOIN, 60, 100)
                raise RuntimeError("abort")
        assert _reserve(db_engine, 100) == 100


class TestPromoViews:
    def test_counts_against_own_limit(self, db_engine):
        with atomic_unit(db_engine) as session:
            lock_account(session, "u1")
            cap = daily_cap.get_or_create_cap(session, "u1", DAY)
            assert daily_cap.reserve_promo_view(cap, 2) == 1
            assert daily_cap.reserve_promo_view(cap, 2) == 2
            with pytest.raises(DailyLimitReachedError) as exc_info:
                daily_cap.reserve_promo_view(cap, 2)
        assert exc_info.value.detail["coin_type"] == daily_cap.PROMO_VIEWS

    def test_remaining_allowance_without_row(self):
        assert daily_cap.remaining_allowance(None, LIMITS, 20) == {
            "icoin": 100,
            "vicoin": 50,
            "promo_views": 20,
        }
