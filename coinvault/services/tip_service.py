"""
coinvault.services.tip_service — Viewer → Creator Tips
=======================================================

A tip is one :func:`atomic_transfer` plus a ``tips`` row, committed together.
Either both balances move or neither does.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import select

from coinvault.database.models import Account, Tip
from coinvault.errors import CreatorNotFoundError, SelfTipNotAllowedError
from coinvault.services.ledger_service import (
    atomic_transfer,
    atomic_unit,
    lock_accounts,
    validate_amount,
    validate_coin_type,
)
from coinvault.services.notification_service import emit, tip_notification

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from coinvault.config import CoinVaultConfig
    from coinvault.services.notification_service import Notifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TipResult:
    tip_id: str
    amount: int
    coin_type: str
    new_balance: int
    replayed: bool = False


def tip_creator(
    engine: Engine,
    config: CoinVaultConfig,
    tipper_id: str,
    creator_id: str,
    content_id: str,
    amount: int,
    coin_type: str,
    *,
    idempotency_key: str | None = None,
    notifier: Notifier | None = None,
) -> TipResult:
    """Move *amount* of *coin_type* from the tipper to the creator.

    A repeated *idempotency_key* from the same tipper returns the original
    tip with ``replayed=True`` and moves nothing.

    Raises
    ------
    SelfTipNotAllowedError, InvalidInputError
        Rejected before any balance access.
    CreatorNotFoundError
        No account exists for *creator_id*.
    InsufficientBalanceError
        Tipper cannot cover the amount; neither balance changes.
    """
    if tipper_id == creator_id:
        raise SelfTipNotAllowedError("Cannot tip yourself", creator_id=creator_id)
    validate_amount(amount, maximum=config.max_tip_amount)
    coin = validate_coin_type(coin_type)

    tip_id = str(uuid.uuid4())
    with atomic_unit(engine, lock_timeout_ms=config.lock_timeout_ms) as session:
        if session.scalar(select(Account.id).where(Account.id == creator_id)) is None:
            raise CreatorNotFoundError("Creator not found", creator_id=creator_id)
        lock_accounts(session, tipper_id, creator_id)

        if idempotency_key is not None:
            previous = session.scalar(
                select(Tip).where(
                    Tip.tipper_id == tipper_id,
                    Tip.idempotency_key == idempotency_key,
                )
            )
            if previous is not None:
                logger.info("Tip %s replayed for key %s", previous.id, idempotency_key)
                return TipResult(
                    tip_id=previous.id,
                    amount=previous.amount,
                    coin_type=previous.coin_type,
                    new_balance=previous.tipper_balance_after,
                    replayed=True,
                )

        debit, _credit = atomic_transfer(
            session,
            tipper_id,
            creator_id,
            coin,
            amount,
            reference_id=tip_id,
            debit_description="Tip to creator for content",
            credit_description="Tip received from viewer",
            create_recipient=False,
        )
        session.add(Tip(
            id=tip_id,
            tipper_id=tipper_id,
            creator_id=creator_id,
            content_id=content_id,
            coin_type=coin.value,
            amount=amount,
            tipper_balance_after=debit.balance_after,
            idempotency_key=idempotency_key,
        ))
        new_balance = debit.balance_after

    logger.info("Tip %s: %s → %s %d %s", tip_id, tipper_id, creator_id, amount, coin.value)
    emit(notifier, tip_notification(creator_id, tip_id, amount, coin.value, content_id))
    return TipResult(
        tip_id=tip_id,
        amount=amount,
        coin_type=coin.value,
        new_balance=new_balance,
    )
