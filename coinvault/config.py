"""
coinvault.config — YAML Configuration Loader
=============================================

Reads ``config.yaml`` for the economy knobs of the ledger engine: daily
issuance limits, payout floors, revenue-share split, conversion bounds and
timeouts.  Secrets (``DATABASE_URL``, ``JWT_SECRET``) are *not* stored here;
they come from the environment (``.env`` via python-dotenv).

Usage::

    from coinvault.config import load_config

    cfg = load_config()                    # reads ./config.yaml by default
    print(cfg.daily_limits["icoin"])       # 100
    print(cfg.min_payout["vicoin"])        # 500
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

_COIN_TYPES = ("vicoin", "icoin")


def _default_daily_limits() -> dict[str, int]:
    return {"icoin": 100, "vicoin": 50}


def _default_min_payout() -> dict[str, int]:
    return {"vicoin": 500, "icoin": 1000}


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class CoinVaultConfig:
    """Immutable configuration loaded from ``config.yaml``.

    Every field has a production default so services can be driven with a
    bare ``CoinVaultConfig()`` (tests, scripts).
    """

    # Reward issuance
    daily_limits: dict[str, int] = field(default_factory=_default_daily_limits)
    daily_promo_view_limit: int = 20
    max_reward_per_call: int = 1000

    # Tipping
    max_tip_amount: int = 10000

    # Payouts
    min_payout: dict[str, int] = field(default_factory=_default_min_payout)
    payout_methods: tuple[str, ...] = ("paypal", "bank", "crypto")

    # Ad revenue share
    creator_revenue_share: str = "0.55"
    platform_revenue_share: str = "0.45"
    min_views_for_share: int = 100
    max_promo_views: int = 10_000_000
    coins_per_promo_view: int = 2
    default_attention_score: int = 70

    # Icoin → Vicoin conversion
    exchange_rate: int = 10
    min_conversion: int = 100
    max_conversion: int = 100000

    # Referrals
    referral_commission_rate: str = "0.10"
    referral_valid_days: int = 90

    # Concurrency
    lock_timeout_ms: int = 5000
    request_timeout_seconds: float = 5.0

    # Notifications (optional outbound webhook)
    notification_webhook_url: str | None = None

    def daily_limit_for(self, coin_type: str) -> int:
        return self.daily_limits[coin_type]

    def min_payout_for(self, coin_type: str) -> int:
        return self.min_payout[coin_type]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> CoinVaultConfig:
    """Read *path* and return a :class:`CoinVaultConfig` instance.

    Keys omitted from the file fall back to the dataclass defaults.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    defaults = CoinVaultConfig()
    economy: dict = raw.get("economy") or {}
    payouts: dict = raw.get("payouts") or {}
    revenue: dict = raw.get("revenue_share") or {}
    conversion: dict = raw.get("conversion") or {}
    referrals: dict = raw.get("referrals") or {}
    timeouts: dict = raw.get("timeouts") or {}
    notifications: dict = raw.get("notifications") or {}

    daily_limits = dict(defaults.daily_limits)
    for coin, limit in (economy.get("daily_limits") or {}).items():
        if coin in _COIN_TYPES:
            daily_limits[coin] = int(limit)

    min_payout = dict(defaults.min_payout)
    for coin, minimum in (payouts.get("minimums") or {}).items():
        if coin in _COIN_TYPES:
            min_payout[coin] = int(minimum)

    return CoinVaultConfig(
        daily_limits=daily_limits,
        daily_promo_view_limit=int(
            economy.get("daily_promo_view_limit", defaults.daily_promo_view_limit)
        ),
        max_reward_per_call=int(
            economy.get("max_reward_per_call", defaults.max_reward_per_call)
        ),
        max_tip_amount=int(economy.get("max_tip_amount", defaults.max_tip_amount)),
        min_payout=min_payout,
        payout_methods=tuple(payouts.get("methods", defaults.payout_methods)),
        creator_revenue_share=str(revenue.get("creator", defaults.creator_revenue_share)),
        platform_revenue_share=str(revenue.get("platform", defaults.platform_revenue_share)),
        min_views_for_share=int(revenue.get("min_views", defaults.min_views_for_share)),
        max_promo_views=int(revenue.get("max_views", defaults.max_promo_views)),
        coins_per_promo_view=int(
            revenue.get("coins_per_promo_view", defaults.coins_per_promo_view)
        ),
        default_attention_score=int(
            revenue.get("default_attention_score", defaults.default_attention_score)
        ),
        exchange_rate=int(conversion.get("exchange_rate", defaults.exchange_rate)),
        min_conversion=int(conversion.get("min_icoin", defaults.min_conversion)),
        max_conversion=int(conversion.get("max_icoin", defaults.max_conversion)),
        referral_commission_rate=str(
            referrals.get("commission_rate", defaults.referral_commission_rate)
        ),
        referral_valid_days=int(referrals.get("valid_days", defaults.referral_valid_days)),
        lock_timeout_ms=int(timeouts.get("lock_timeout_ms", defaults.lock_timeout_ms)),
        request_timeout_seconds=float(
            timeouts.get("request_seconds", defaults.request_timeout_seconds)
        ),
        notification_webhook_url=notifications.get("webhook_url") or None,
    )
