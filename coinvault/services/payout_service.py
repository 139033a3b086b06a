"""
coinvault.services.payout_service — Creator Withdrawals
========================================================

``request_payout`` debits the balance and records a ``processing`` payout in
one atomic unit.  Only after commit is the payout handed to the payment
rail; the rail later reports back through ``complete_payout`` or
``fail_payout`` (which refunds).

Validation order matters: amount, coin type, method and the minimum are all
checked before any balance is read.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from coinvault.database.models import KycStatus, Payout, PayoutStatus, TransactionKind
from coinvault.errors import (
    BelowMinimumPayoutError,
    InvalidInputError,
    InvalidPayoutStateError,
    KycRequiredError,
    PayoutNotFoundError,
)
from coinvault.services.ledger_service import (
    atomic_adjust,
    atomic_unit,
    lock_account,
    validate_amount,
    validate_coin_type,
)
from coinvault.services.notification_service import emit, payout_notification

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from coinvault.config import CoinVaultConfig
    from coinvault.services.notification_service import Notifier

logger = logging.getLogger(__name__)

ESTIMATED_ARRIVAL = "3-5 business days"

KycLookup = Callable[[str], str]


@dataclass(frozen=True, slots=True)
class PayoutRequest:
    """What the payment rail receives after the debit has committed."""

    payout_id: str
    account_id: str
    amount: int
    coin_type: str
    method: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class PayoutResult:
    transaction_id: int
    payout_id: str
    amount: int
    coin_type: str
    method: str
    new_balance: int
    status: str = PayoutStatus.PROCESSING.value
    estimated_arrival: str = ESTIMATED_ARRIVAL


class PaymentRail(Protocol):
    def submit(self, request: PayoutRequest) -> None: ...


class LoggingPaymentRail:
    """Default rail: records the hand-off and leaves settlement to an operator."""

    def submit(self, request: PayoutRequest) -> None:
        logger.info(
            "Payout %s handed to %s rail: %d %s for %s",
            request.payout_id,
            request.method,
            request.amount,
            request.coin_type,
            request.account_id,
        )


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------
def _validate_request(
    config: CoinVaultConfig, amount: object, coin_type: str, method: str
) -> tuple[int, str]:
    amount = validate_amount(amount)
    coin = validate_coin_type(coin_type)
    if method not in config.payout_methods:
        raise InvalidInputError(
            f"Invalid payout method: {method!r}",
            field="method",
            allowed=list(config.payout_methods),
        )
    minimum = config.min_payout_for(coin)
    if amount < minimum:
        raise BelowMinimumPayoutError(
            f"Minimum payout is {minimum} {coin.value}s",
            minimum=minimum,
            coin_type=coin.value,
            requested=amount,
        )
    return amount, coin.value


def request_payout(
    engine: Engine,
    config: CoinVaultConfig,
    account_id: str,
    amount: int,
    coin_type: str,
    method: str,
    details: dict[str, Any] | None = None,
    *,
    rail: PaymentRail | None = None,
    kyc_lookup: KycLookup | None = None,
    notifier: Notifier | None = None,
) -> PayoutResult:
    """Debit *amount* and queue a payout.

    *kyc_lookup* maps an account id to its KYC status; by default the
    ``kyc_status`` stored on the account is used.

    Raises
    ------
    InvalidInputError, BelowMinimumPayoutError
        Before any balance access.
    KycRequiredError
        The account is not ``verified``.
    InsufficientBalanceError
        The balance cannot cover *amount*; nothing is written.
    """
    amount, coin = _validate_request(config, amount, coin_type, method)
    details = dict(details or {})
    payout_id = str(uuid.uuid4())

    with atomic_unit(engine, lock_timeout_ms=config.lock_timeout_ms) as session:
        account = lock_account(session, account_id)
        kyc_status = kyc_lookup(account_id) if kyc_lookup else account.kyc_status
        if kyc_status != KycStatus.VERIFIED:
            raise KycRequiredError(
                "KYC verification required before payout",
                kyc_status=str(kyc_status),
            )

        tx = atomic_adjust(
            session,
            account_id,
            coin,
            -amount,
            description=f"Payout via {method}",
            reference_id=f"payout_{payout_id}",
            kind=TransactionKind.WITHDRAWN,
        )
        session.add(Payout(
            id=payout_id,
            account_id=account_id,
            transaction_id=tx.id,
            coin_type=coin,
            amount=amount,
            method=method,
            details=details,
            status=PayoutStatus.PROCESSING.value,
        ))
        result = PayoutResult(
            transaction_id=tx.id,
            payout_id=payout_id,
            amount=amount,
            coin_type=coin,
            method=method,
            new_balance=tx.balance_after,
        )

    logger.info("Payout %s requested: %d %s via %s", payout_id, amount, coin, method)

    rail = rail or LoggingPaymentRail()
    try:
        rail.submit(PayoutRequest(payout_id, account_id, amount, coin, method, details))
    except Exception:
        # The debit stands; the payout stays ``processing`` for reconciliation.
        logger.exception("Payment rail rejected hand-off of payout %s", payout_id)

    emit(notifier, payout_notification(account_id, payout_id, amount, coin, result.status))
    return result


# ---------------------------------------------------------------------------
# Rail callbacks
# ---------------------------------------------------------------------------
def _lock_processing_payout(session: Session, payout_id: str) -> Payout:
    """Lock the owning account, then the payout row; require ``processing``."""
    owner = session.scalar(select(Payout.account_id).where(Payout.id == payout_id))
    if owner is None:
        raise PayoutNotFoundError("Payout not found", payout_id=payout_id)
    lock_account(session, owner, create=False)
    payout = session.scalar(
        select(Payout)
        .where(Payout.id == payout_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    if payout.status != PayoutStatus.PROCESSING:
        raise InvalidPayoutStateError(
            f"Payout is already {payout.status}",
            payout_id=payout_id,
            status=payout.status,
        )
    return payout


def complete_payout(
    engine: Engine,
    config: CoinVaultConfig,
    payout_id: str,
    *,
    notifier: Notifier | None = None,
) -> Payout:
    with atomic_unit(engine, lock_timeout_ms=config.lock_timeout_ms) as session:
        payout = _lock_processing_payout(session, payout_id)
        payout.status = PayoutStatus.COMPLETED.value

    logger.info("Payout %s completed", payout_id)
    emit(notifier, payout_notification(
        payout.account_id, payout.id, payout.amount, payout.coin_type, payout.status
    ))
    return payout


def fail_payout(
    engine: Engine,
    config: CoinVaultConfig,
    payout_id: str,
    reason: str,
    *,
    notifier: Notifier | None = None,
) -> Payout:
    """Mark the payout failed and refund the withdrawn amount."""
    with atomic_unit(engine, lock_timeout_ms=config.lock_timeout_ms) as session:
        payout = _lock_processing_payout(session, payout_id)
        atomic_adjust(
            session,
            payout.account_id,
            payout.coin_type,
            payout.amount,
            description=f"Payout via {payout.method} refunded",
            reference_id=f"payout_{payout.id}",
        )
        payout.status = PayoutStatus.FAILED.value
        payout.failure_reason = reason

    logger.warning("Payout %s failed (%s); %d %s refunded",
                   payout_id, reason, payout.amount, payout.coin_type)
    emit(notifier, payout_notification(
        payout.account_id, payout.id, payout.amount, payout.coin_type, payout.status
    ))
    return payout
