"""
tests/test_reward_engine.py — Unit Tests for Reward Pipeline
=============================================================

Tests the pure calculation pipeline (no I/O, no database).
"""

from __future__ import annotations

import random
from decimal import Decimal

import pytest

from coinvault.database.models import CoinType, RewardType
from coinvault.engine.events import REWARD_TABLE, RewardClaim
from coinvault.engine.reward import (
    apply_attention_scaling,
    calculate_revenue_split,
    quote_reward,
    resolve_base_amount,
)
from coinvault.errors import InvalidInputError


def _claim(reward_type=RewardType.PROMO_VIEW, **kwargs) -> RewardClaim:
    return RewardClaim(account_id="u1", reward_type=reward_type, content_id="c1", **kwargs)


# ---------------------------------------------------------------------------
# Base amount
# ---------------------------------------------------------------------------
class TestBaseAmount:
    def test_fixed_amounts(self):
        assert REWARD_TABLE[RewardType.REFERRAL].coin_type == CoinType.VICOIN
        assert resolve_base_amount(REWARD_TABLE[RewardType.REFERRAL], None, random.Random()) == 10
        assert resolve_base_amount(REWARD_TABLE[RewardType.MILESTONE], None, random.Random()) == 20

    @pytest.mark.parametrize(
        "reward_type, low, high",
        [
            (RewardType.PROMO_VIEW, 1, 10),
            (RewardType.TASK_COMPLETE, 3, 20),
            (RewardType.DAILY_BONUS, 1, 5),
        ],
    )
    def test_ranges_sample_within_bounds(self, reward_type, low, high):
        rng = random.Random(7)
        spec = REWARD_TABLE[reward_type]
        samples = {resolve_base_amount(spec, None, rng) for _ in range(500)}
        assert min(samples) >= low
        assert max(samples) <= high
        assert len(samples) > 1

    def test_requested_amount_replaces_table(self):
        assert resolve_base_amount(REWARD_TABLE[RewardType.PROMO_VIEW], 20, random.Random()) == 20

    def test_ad_revenue_not_claimable(self):
        with pytest.raises(InvalidInputError):
            quote_reward(_claim(RewardType.AD_REVENUE), max_per_call=1000)


# ---------------------------------------------------------------------------
# Attention scaling
# ---------------------------------------------------------------------------
class TestAttentionScaling:
    def test_half_attention_halves(self):
        assert apply_attention_scaling(20, 50) == 10

    def test_floor_at_half_value(self):
        assert apply_attention_scaling(20, 10) == 10
        assert apply_attention_scaling(20, 0) == 10

    def test_full_or_missing_score_unchanged(self):
        assert apply_attention_scaling(20, 100) == 20
        assert apply_attention_scaling(20, None) == 20

    def test_never_below_one(self):
        assert apply_attention_scaling(1, 10) == 1

    def test_floors_fractional_result(self):
        assert apply_attention_scaling(7, 75) == 5


# ---------------------------------------------------------------------------
# Full pipeline
# ---------------------------------------------------------------------------
class TestQuoteReward:
    def test_requested_amount_with_attention(self):
        quote = quote_reward(
            _claim(requested_amount=20, attention_score=50), max_per_call=1000
        )
        assert quote.coin_type == CoinType.ICOIN
        assert quote.amount == 10
        assert quote.base_amount == 20
        assert quote.scaled

    def test_per_call_cap(self):
        quote = quote_reward(_claim(requested_amount=5000), max_per_call=1000)
        assert quote.amount == 1000

    def test_deterministic_with_seeded_rng(self):
        a = quote_reward(_claim(), max_per_call=1000, rng=random.Random(42))
        b = quote_reward(_claim(), max_per_call=1000, rng=random.Random(42))
        assert a == b

    @pytest.mark.parametrize("score", [-1, 101, "high", True])
    def test_rejects_bad_attention_score(self, score):
        with pytest.raises(InvalidInputError):
            quote_reward(_claim(attention_score=score), max_per_call=1000)

    @pytest.mark.parametrize("amount", [0, -5, 2.5])
    def test_rejects_bad_requested_amount(self, amount):
        with pytest.raises(InvalidInputError):
            quote_reward(_claim(requested_amount=amount), max_per_call=1000)


# ---------------------------------------------------------------------------
# Revenue split
# ---------------------------------------------------------------------------
class TestRevenueSplit:
    def test_default_rates(self):
        split = calculate_revenue_split(
            200, 70, coins_per_view=2, creator_rate="0.55", platform_rate="0.45"
        )
        # 200 × 2 × 1.7 = 680
        assert split.total_revenue == Decimal("680")
        assert split.creator_share == 374
        assert split.platform_share == 306

    def test_shares_are_floored(self):
        split = calculate_revenue_split(
            101, 33, coins_per_view=2, creator_rate="0.55", platform_rate="0.45"
        )
        # 101 × 2 × 1.33 = 268.66
        assert split.total_revenue == Decimal("268.66")
        assert split.creator_share == 147
        assert split.platform_share == 120
        assert split.creator_share + split.platform_share <= split.total_revenue
