"""
coinvault.engine.events — RewardClaim and the static reward table
==================================================================

Every earning request is normalized into a :class:`RewardClaim` before the
reward pipeline processes it.
"""

from __future__ import annotations

from dataclasses import dataclass

from coinvault.database.models import CoinType, RewardType

__all__ = ["REWARD_TABLE", "RewardClaim", "RewardSpec"]


@dataclass(frozen=True, slots=True)
class RewardSpec:
    """Either a fixed ``amount`` or an inclusive ``[minimum, maximum]`` range."""

    coin_type: CoinType
    amount: int | None = None
    minimum: int | None = None
    maximum: int | None = None


# ---------------------------------------------------------------------------
# Base amounts per claimable reward type
# ---------------------------------------------------------------------------
REWARD_TABLE: dict[RewardType, RewardSpec] = {
    RewardType.PROMO_VIEW: RewardSpec(CoinType.ICOIN, minimum=1, maximum=10),
    RewardType.TASK_COMPLETE: RewardSpec(CoinType.ICOIN, minimum=3, maximum=20),
    RewardType.DAILY_BONUS: RewardSpec(CoinType.ICOIN, minimum=1, maximum=5),
    RewardType.REFERRAL: RewardSpec(CoinType.VICOIN, amount=10),
    RewardType.MILESTONE: RewardSpec(CoinType.VICOIN, amount=20),
}


@dataclass(frozen=True, slots=True)
class RewardClaim:
    """One earning event claimed by an authenticated account.

    ``(account_id, content_id, reward_type)`` is the replay-protection key.
    """

    account_id: str
    reward_type: RewardType
    content_id: str
    attention_score: float | None = None
    requested_amount: int | None = None
