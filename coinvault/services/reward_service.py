"""
coinvault.services.reward_service — Reward Issuance
====================================================

Turns a :class:`RewardClaim` into a ledger credit.  Everything between the
replay check and the journal write happens in one atomic unit holding the
account lock, so two concurrent claims for the same content serialize and
exactly one of them is granted.

The UNIQUE ``(account_id, content_id, reward_type)`` constraint on
``reward_logs`` backs the in-unit check.  The RewardLog row is inserted under
a SAVEPOINT, and an IntegrityError there means another unit won the race.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from coinvault.database.models import (
    Referral,
    ReferralStatus,
    RewardLog,
    RewardType,
)
from coinvault.engine.events import RewardClaim
from coinvault.engine.reward import quote_reward
from coinvault.errors import AlreadyClaimedError, ReferralNotEligibleError
from coinvault.services import daily_cap
from coinvault.services.ledger_service import atomic_adjust, atomic_unit, lock_account
from coinvault.services.notification_service import emit, reward_notification
from coinvault.services.referral_service import effective_status

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from coinvault.config import CoinVaultConfig
    from coinvault.services.notification_service import Notifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RewardResult:
    amount: int
    coin_type: str
    new_balance: int
    daily_remaining: dict[str, int]
    transaction_id: int | None = None


def _already_claimed(claim: RewardClaim) -> AlreadyClaimedError:
    return AlreadyClaimedError(
        "Reward already claimed for this content",
        content_id=claim.content_id,
        reward_type=claim.reward_type.value,
    )


def _check_replay(session: Session, claim: RewardClaim) -> None:
    existing = session.scalar(
        select(RewardLog.id).where(
            RewardLog.account_id == claim.account_id,
            RewardLog.content_id == claim.content_id,
            RewardLog.reward_type == claim.reward_type.value,
        )
    )
    if existing is not None:
        raise _already_claimed(claim)


def _check_referral_eligible(session: Session, claim: RewardClaim) -> None:
    """A referral reward needs a live referral of ``content_id`` by the claimant."""
    referral = session.scalar(
        select(Referral).where(
            Referral.referrer_id == claim.account_id,
            Referral.referred_id == claim.content_id,
        )
    )
    if referral is None or effective_status(referral) != ReferralStatus.ACTIVE:
        raise ReferralNotEligibleError(
            "No active referral for this account",
            field="content_id",
            referred_id=claim.content_id,
        )


def issue_reward(
    engine: Engine,
    config: CoinVaultConfig,
    claim: RewardClaim,
    *,
    notifier: Notifier | None = None,
    rng: random.Random | None = None,
    today: date | None = None,
) -> RewardResult:
    """Grant the reward for *claim* at most once.

    Pipeline (inside one atomic unit):

    1. Lock the account and reject an existing RewardLog for the replay key.
    2. Quote the amount (table → per-call cap → attention scaling).
    3. Promotion views consume the daily promo-view counter.
    4. Clamp to what is left of the daily allowance for the coin type.
    5. Credit the account and link a RewardLog row to the Transaction.

    Notification happens after commit and never affects the result.

    Raises
    ------
    InvalidInputError
        Unknown reward type, bad amount or attention score.
    AlreadyClaimedError
        The replay key has already been granted.
    DailyLimitReachedError
        Nothing left for the coin type (or promo views) today.
    LedgerBusyError
        Lock wait exceeded; retry with backoff.
    """
    quote = quote_reward(claim, max_per_call=config.max_reward_per_call, rng=rng)
    coin = quote.coin_type
    day = today or daily_cap.utc_today()
    limit = config.daily_limit_for(coin)

    with atomic_unit(engine, lock_timeout_ms=config.lock_timeout_ms) as session:
        lock_account(session, claim.account_id)
        _check_replay(session, claim)
        if claim.reward_type == RewardType.REFERRAL:
            _check_referral_eligible(session, claim)

        cap = daily_cap.get_or_create_cap(session, claim.account_id, day)
        if claim.reward_type == RewardType.PROMO_VIEW:
            daily_cap.reserve_promo_view(cap, config.daily_promo_view_limit)
        granted = daily_cap.reserve_earning(
            session, claim.account_id, day, coin, quote.amount, limit, cap=cap
        )

        tx = atomic_adjust(
            session,
            claim.account_id,
            coin,
            granted,
            description=f"Earned from {claim.reward_type.value.replace('_', ' ')}",
            reference_id=claim.content_id,
        )

        log = RewardLog(
            account_id=claim.account_id,
            content_id=claim.content_id,
            reward_type=claim.reward_type.value,
            coin_type=coin.value,
            amount=granted,
            attention_score=claim.attention_score,
            transaction_id=tx.id,
        )
        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(log)
                session.flush()
        except IntegrityError:
            raise _already_claimed(claim) from None

        result = RewardResult(
            amount=granted,
            coin_type=coin.value,
            new_balance=tx.balance_after,
            daily_remaining=daily_cap.remaining_allowance(
                cap, config.daily_limits, config.daily_promo_view_limit
            ),
            transaction_id=tx.id,
        )

    logger.info(
        "Reward %s %d %s → %s (content=%s, quoted=%d)",
        claim.reward_type.value,
        granted,
        coin.value,
        claim.account_id,
        claim.content_id,
        quote.amount,
    )
    emit(
        notifier,
        reward_notification(
            claim.account_id, granted, coin.value,
            claim.reward_type.value, claim.content_id,
        ),
    )
    return result
