"""
coinvault.services.referral_service — Referral Codes & Relationships
=====================================================================

Each account owns one shareable 8-character code.  Another account may apply
it once; the resulting :class:`Referral` stays ``active`` for
``referral_valid_days`` and is what makes a ``referral`` reward claimable.
"""

from __future__ import annotations

import logging
import random
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from coinvault.database.models import Referral, ReferralCode, ReferralStatus
from coinvault.errors import (
    AlreadyReferredError,
    InvalidInputError,
    InvalidReferralCodeError,
    LedgerBusyError,
    SelfReferralError,
)
from coinvault.services.ledger_service import atomic_unit

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from coinvault.config import CoinVaultConfig

logger = logging.getLogger(__name__)

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 8
MAX_CODE_ATTEMPTS = 5

_system_random = random.SystemRandom()


def generate_code(rng: random.Random | None = None) -> str:
    rng = rng or _system_random
    return "".join(rng.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def effective_status(referral: Referral, now: datetime | None = None) -> str:
    """``expired`` once ``expires_at`` has passed, whatever the stored status."""
    now = now or datetime.now(UTC)
    expires_at = referral.expires_at
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=UTC)
    if expires_at <= now:
        return ReferralStatus.EXPIRED.value
    return referral.status


def get_or_create_code(
    engine: Engine, account_id: str, *, rng: random.Random | None = None
) -> ReferralCode:
    """Return the account's code, generating one on first use.

    Collisions with another account's code are retried up to
    ``MAX_CODE_ATTEMPTS`` times.
    """
    with Session(engine, expire_on_commit=False) as session:
        existing = session.scalar(
            select(ReferralCode).where(ReferralCode.account_id == account_id)
        )
        if existing is not None:
            return existing

        for attempt in range(1, MAX_CODE_ATTEMPTS + 1):
            code = ReferralCode(
                code=generate_code(rng), account_id=account_id, uses_count=0, is_active=True
            )
            try:
                with session.begin_nested():   # SAVEPOINT
                    session.add(code)
                    session.flush()
            except IntegrityError:
                # Either the code is taken or a concurrent request created
                # this account's code.
                mine = session.scalar(
                    select(ReferralCode).where(ReferralCode.account_id == account_id)
                )
                if mine is not None:
                    session.commit()
                    return mine
                logger.debug("Referral code collision (attempt %d)", attempt)
                continue
            session.commit()
            logger.info("Referral code %s created for %s", code.code, account_id)
            return code

    raise LedgerBusyError(
        "Could not allocate a unique referral code", attempts=MAX_CODE_ATTEMPTS
    )


def apply_referral(
    engine: Engine, config: CoinVaultConfig, account_id: str, code: str
) -> Referral:
    """Record that *account_id* was referred by the owner of *code*.

    Raises
    ------
    AlreadyReferredError
        The account has already applied a code.
    InvalidReferralCodeError
        Unknown or inactive code.
    SelfReferralError
        The code belongs to *account_id*.
    """
    normalized = (code or "").strip().upper()
    if not normalized:
        raise InvalidInputError("Referral code is required", field="code")

    with atomic_unit(engine, lock_timeout_ms=config.lock_timeout_ms) as session:
        if session.scalar(
            select(Referral.id).where(Referral.referred_id == account_id)
        ) is not None:
            raise AlreadyReferredError("You have already used a referral code")

        code_row = session.scalar(
            select(ReferralCode)
            .where(ReferralCode.code == normalized, ReferralCode.is_active.is_(True))
            .with_for_update()
        )
        if code_row is None:
            raise InvalidReferralCodeError(
                "Invalid or expired referral code", code=normalized
            )
        if code_row.account_id == account_id:
            raise SelfReferralError("You cannot use your own referral code")

        referral = Referral(
            referrer_id=code_row.account_id,
            referred_id=account_id,
            code=normalized,
            status=ReferralStatus.ACTIVE.value,
            commission_rate=Decimal(config.referral_commission_rate),
            expires_at=datetime.now(UTC) + timedelta(days=config.referral_valid_days),
        )
        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(referral)
                session.flush()
        except IntegrityError:
            raise AlreadyReferredError("You have already used a referral code") from None
        code_row.uses_count += 1

    logger.info("Referral applied: %s referred %s", referral.referrer_id, account_id)
    return referral


def list_referrals(engine: Engine, account_id: str) -> list[Referral]:
    """Referrals made with *account_id*'s code, newest first."""
    with Session(engine) as session:
        rows = session.scalars(
            select(Referral)
            .where(Referral.referrer_id == account_id)
            .order_by(Referral.id.desc())
        ).all()
        for row in rows:
            session.expunge(row)
        return list(rows)
