"""
coinvault.services.daily_cap — Per-Account Daily Issuance Counters
===================================================================

One ``daily_caps`` row per ``(account_id, day)``.  A new UTC day simply has
no row yet, so counters never need zeroing.  All functions here run inside
the caller's atomic unit, after the account lock has been taken.
"""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from coinvault.database.models import CoinType, DailyCap
from coinvault.errors import DailyLimitReachedError

logger = logging.getLogger(__name__)

PROMO_VIEWS = "promo_views"


def utc_today() -> date:
    return datetime.now(UTC).date()


def get_or_create_cap(session: Session, account_id: str, day: date) -> DailyCap:
    """Fetch or lazily insert the zeroed counter row for *day*."""
    cap = session.scalar(
        select(DailyCap)
        .where(DailyCap.account_id == account_id, DailyCap.day == day)
        .with_for_update()
    )
    if cap is None:
        cap = DailyCap(
            account_id=account_id,
            day=day,
            icoin_earned=0,
            vicoin_earned=0,
            promo_views_used=0,
        )
        session.add(cap)
        session.flush()
    return cap


def reserve_earning(
    session: Session,
    account_id: str,
    day: date,
    coin_type: CoinType,
    requested: int,
    limit: int,
    *,
    cap: DailyCap | None = None,
) -> int:
    """Clamp *requested* to what is left of today's allowance and book it.

    Returns the granted amount (``min(requested, remaining)``).

    Raises
    ------
    DailyLimitReachedError
        If nothing is left for *coin_type* today.
    """
    cap = cap or get_or_create_cap(session, account_id, day)
    earned = cap.earned(coin_type)
    remaining = limit - earned
    if remaining <= 0:
        logger.info(
            "Daily %s limit reached for %s (%d/%d)", coin_type, account_id, earned, limit
        )
        raise DailyLimitReachedError(
            f"Daily {coin_type} limit reached",
            coin_type=str(coin_type),
            limit=limit,
            earned_today=earned,
        )
    granted = min(requested, remaining)
    cap.add_earned(coin_type, granted)
    return granted


def check_promo_view(cap: DailyCap, limit: int) -> None:
    """Fail when today's promotion-view allowance is used up."""
    if cap.promo_views_used >= limit:
        raise DailyLimitReachedError(
            "Daily promo view limit reached",
            coin_type=PROMO_VIEWS,
            limit=limit,
            earned_today=cap.promo_views_used,
        )


def reserve_promo_view(cap: DailyCap, limit: int) -> int:
    """Count one promotion view against its own daily limit."""
    check_promo_view(cap, limit)
    cap.promo_views_used += 1
    return cap.promo_views_used


def remaining_allowance(
    cap: DailyCap | None, daily_limits: dict[str, int], promo_view_limit: int
) -> dict[str, int]:
    """``{icoin, vicoin, promo_views}`` left for the day (never negative)."""
    icoin_earned = cap.icoin_earned if cap else 0
    vicoin_earned = cap.vicoin_earned if cap else 0
    promo_used = cap.promo_views_used if cap else 0
    return {
        CoinType.ICOIN.value: max(0, daily_limits[CoinType.ICOIN] - icoin_earned),
        CoinType.VICOIN.value: max(0, daily_limits[CoinType.VICOIN] - vicoin_earned),
        PROMO_VIEWS: max(0, promo_view_limit - promo_used),
    }


def daily_usage(
    engine,
    account_id: str,
    *,
    daily_limits: dict[str, int],
    promo_view_limit: int,
    day: date | None = None,
) -> dict:
    """Read-only snapshot of today's counters and remaining allowance."""
    day = day or utc_today()
    with Session(engine) as session:
        cap = session.get(DailyCap, (account_id, day))
        return {
            "account_id": account_id,
            "day": day.isoformat(),
            "earned": {
                CoinType.ICOIN.value: cap.icoin_earned if cap else 0,
                CoinType.VICOIN.value: cap.vicoin_earned if cap else 0,
                PROMO_VIEWS: cap.promo_views_used if cap else 0,
            },
            "remaining": remaining_allowance(cap, daily_limits, promo_view_limit),
        }
