"""
coinvault.engine.reward — Reward & Revenue Calculation Pipeline
================================================================

Pure calculation: no DB I/O.  The services feed these functions and commit
the results inside an atomic unit.

Reward pipeline:
  RewardClaim → Table lookup / sample → Per-call cap → Attention scaling → RewardQuote

Revenue formula:
  views × coins_per_view × (1 + score/100) → floor(creator %) / floor(platform %)

The two attention curves differ: rewards shrink towards
half value for low attention, revenue grows with attention.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal

from coinvault.database.models import CoinType
from coinvault.engine.events import REWARD_TABLE, RewardClaim, RewardSpec
from coinvault.errors import InvalidInputError

logger = logging.getLogger(__name__)

__all__ = [
    "RevenueSplit",
    "RewardQuote",
    "apply_attention_scaling",
    "calculate_revenue_split",
    "quote_reward",
    "resolve_base_amount",
    "validate_attention_score",
]

MIN_ATTENTION_FACTOR = Decimal("0.5")


def _floor(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


# ---------------------------------------------------------------------------
# RewardQuote: output of the reward pipeline
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class RewardQuote:
    """Amount to credit before daily-cap clamping."""

    coin_type: CoinType
    amount: int
    base_amount: int
    scaled: bool = False


def validate_attention_score(score: float | None) -> float | None:
    if score is None:
        return None
    if isinstance(score, bool) or not isinstance(score, int | float) or not 0 <= score <= 100:
        raise InvalidInputError(
            "Attention score must be between 0 and 100",
            field="attention_score",
            value=score,
        )
    return score


# ---------------------------------------------------------------------------
# Stage 1: Base amount
# ---------------------------------------------------------------------------
def resolve_base_amount(
    spec: RewardSpec, requested: int | None, rng: random.Random
) -> int:
    """Caller-supplied amount if given, else the fixed amount, else a uniform
    draw from the inclusive range."""
    if requested is not None:
        return requested
    if spec.amount is not None:
        return spec.amount
    return rng.randint(spec.minimum, spec.maximum)


# ---------------------------------------------------------------------------
# Stage 2: Attention scaling
# ---------------------------------------------------------------------------
def apply_attention_scaling(amount: int, attention_score: float | None) -> int:
    """Scale by ``max(0.5, score/100)`` when ``score < 100``; floor, min 1."""
    if attention_score is None or attention_score >= 100:
        return amount
    factor = max(MIN_ATTENTION_FACTOR, Decimal(str(attention_score)) / 100)
    return max(1, _floor(amount * factor))


# ---------------------------------------------------------------------------
# Full reward pipeline
# ---------------------------------------------------------------------------
def quote_reward(
    claim: RewardClaim,
    *,
    max_per_call: int,
    rng: random.Random | None = None,
) -> RewardQuote:
    """Run the reward pipeline on a claim.

    Raises
    ------
    InvalidInputError
        For unknown/unclaimable reward types, non-positive requested amounts
        or an out-of-range attention score.
    """
    spec = REWARD_TABLE.get(claim.reward_type)
    if spec is None:
        raise InvalidInputError(
            f"Invalid reward type: {claim.reward_type}",
            field="reward_type",
            allowed=[t.value for t in REWARD_TABLE],
        )
    requested = claim.requested_amount
    if requested is not None and (
        isinstance(requested, bool) or not isinstance(requested, int) or requested <= 0
    ):
        raise InvalidInputError(
            "Requested amount must be a positive integer", field="amount", value=requested
        )
    score = validate_attention_score(claim.attention_score)

    base = resolve_base_amount(spec, requested, rng or random.Random())
    capped = min(base, max_per_call)
    amount = apply_attention_scaling(capped, score)

    return RewardQuote(
        coin_type=spec.coin_type,
        amount=amount,
        base_amount=base,
        scaled=amount != capped,
    )


# ---------------------------------------------------------------------------
# Revenue share
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class RevenueSplit:
    total_revenue: Decimal
    creator_share: int
    platform_share: int


def calculate_revenue_split(
    promo_view_count: int,
    attention_score: float,
    *,
    coins_per_view: int,
    creator_rate: str | Decimal,
    platform_rate: str | Decimal,
) -> RevenueSplit:
    """``total = views × coins_per_view × (1 + score/100)``; both shares floored."""
    multiplier = 1 + Decimal(str(attention_score)) / 100
    total = Decimal(promo_view_count) * Decimal(coins_per_view) * multiplier
    return RevenueSplit(
        total_revenue=total,
        creator_share=_floor(total * Decimal(str(creator_rate))),
        platform_share=_floor(total * Decimal(str(platform_rate))),
    )
