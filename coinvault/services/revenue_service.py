"""
coinvault.services.revenue_service — Ad Revenue Sharing
========================================================

Splits the ad revenue earned by a piece of promoted content between its
creator and the platform.  The split is done once per ``content_id``:
the ``revenue_shares`` primary key is checked and written in the same
atomic unit as the creator's credit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError

from coinvault.database.models import (
    CoinType,
    RevenueShare,
    RewardLog,
    RewardType,
    TransactionKind,
)
from coinvault.engine.reward import calculate_revenue_split, validate_attention_score
from coinvault.errors import (
    AccountNotFoundError,
    AlreadySharedError,
    BelowMinimumViewsError,
    CreatorNotFoundError,
    InvalidInputError,
)
from coinvault.services.ledger_service import atomic_adjust, atomic_unit, lock_account
from coinvault.services.notification_service import emit, revenue_notification

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from coinvault.config import CoinVaultConfig
    from coinvault.services.notification_service import Notifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RevenueShareResult:
    content_id: str
    creator_share: int
    platform_share: int
    total_revenue: Decimal
    new_balance: int


def _already_shared(content_id: str) -> AlreadySharedError:
    return AlreadySharedError(
        "Revenue already shared for this content", content_id=content_id
    )


def share_ad_revenue(
    engine: Engine,
    config: CoinVaultConfig,
    content_id: str,
    creator_id: str,
    promo_view_count: int,
    attention_score: float | None = None,
    *,
    notifier: Notifier | None = None,
) -> RevenueShareResult:
    """Credit the creator's share of *content_id*'s ad revenue in vicoin.

    An absent *attention_score* defaults to ``default_attention_score``; an
    explicit 0 is kept and yields a multiplier of 1, rather than being
    treated as missing.

    Raises
    ------
    InvalidInputError
        Missing ids, or a view count outside ``[0, max_promo_views]``.
    BelowMinimumViewsError
        Fewer than ``min_views_for_share`` promo views (a decline).
    AlreadySharedError
        Revenue for *content_id* was already split.
    CreatorNotFoundError
        No account exists for *creator_id*.
    """
    if not content_id or not creator_id:
        raise InvalidInputError("Missing required fields", field="content_id")
    if isinstance(promo_view_count, bool) or not isinstance(promo_view_count, int) \
            or promo_view_count < 0:
        raise InvalidInputError(
            "Promo view count must be a non-negative integer",
            field="promo_view_count",
            value=promo_view_count,
        )
    if promo_view_count > config.max_promo_views:
        raise InvalidInputError(
            f"Promo view count exceeds the maximum of {config.max_promo_views}",
            field="promo_view_count",
            value=promo_view_count,
            maximum=config.max_promo_views,
        )
    if promo_view_count < config.min_views_for_share:
        raise BelowMinimumViewsError(
            f"Minimum {config.min_views_for_share} promo views required",
            minimum=config.min_views_for_share,
            current_views=promo_view_count,
        )
    score = validate_attention_score(attention_score)
    if score is None:
        score = config.default_attention_score

    split = calculate_revenue_split(
        promo_view_count,
        score,
        coins_per_view=config.coins_per_promo_view,
        creator_rate=config.creator_revenue_share,
        platform_rate=config.platform_revenue_share,
    )

    with atomic_unit(engine, lock_timeout_ms=config.lock_timeout_ms) as session:
        try:
            account = lock_account(session, creator_id, create=False)
        except AccountNotFoundError:
            raise CreatorNotFoundError(
                "Creator not found", creator_id=creator_id
            ) from None
        if session.get(RevenueShare, content_id) is not None:
            raise _already_shared(content_id)

        new_balance = account.vicoin_balance
        transaction_id = None
        if split.creator_share > 0:
            tx = atomic_adjust(
                session,
                creator_id,
                CoinType.VICOIN,
                split.creator_share,
                description=f"Ad revenue share for {promo_view_count} promo views",
                reference_id=f"ad_revenue_{content_id}",
                kind=TransactionKind.EARNING,
            )
            new_balance = tx.balance_after
            transaction_id = tx.id

        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(RevenueShare(
                    content_id=content_id,
                    creator_id=creator_id,
                    promo_view_count=promo_view_count,
                    attention_score=attention_score,
                    total_revenue=split.total_revenue,
                    creator_share=split.creator_share,
                    platform_share=split.platform_share,
                    transaction_id=transaction_id,
                ))
                if transaction_id is not None:
                    session.add(RewardLog(
                        account_id=creator_id,
                        content_id=content_id,
                        reward_type=RewardType.AD_REVENUE.value,
                        coin_type=CoinType.VICOIN.value,
                        amount=split.creator_share,
                        attention_score=attention_score,
                        transaction_id=transaction_id,
                    ))
                session.flush()
        except IntegrityError:
            raise _already_shared(content_id) from None

    logger.info(
        "Ad revenue for %s: total=%s creator=%d platform=%d → %s",
        content_id,
        split.total_revenue,
        split.creator_share,
        split.platform_share,
        creator_id,
    )
    emit(notifier, revenue_notification(
        creator_id, content_id, split.creator_share, promo_view_count
    ))
    return RevenueShareResult(
        content_id=content_id,
        creator_share=split.creator_share,
        platform_share=split.platform_share,
        total_revenue=split.total_revenue,
        new_balance=new_balance,
    )
