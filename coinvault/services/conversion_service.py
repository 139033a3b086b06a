"""
coinvault.services.conversion_service — Icoin → Vicoin Conversion
==================================================================
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from coinvault.database.models import CoinType
from coinvault.errors import InvalidInputError
from coinvault.services.ledger_service import atomic_adjust, atomic_unit, validate_amount

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from coinvault.config import CoinVaultConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ConversionResult:
    icoin_spent: int
    vicoin_received: int
    new_icoin_balance: int
    new_vicoin_balance: int
    exchange_rate: int
    reference_id: str


def convert_coins(
    engine: Engine, config: CoinVaultConfig, account_id: str, icoin_amount: int
) -> ConversionResult:
    """Spend *icoin_amount* icoin for ``icoin_amount // exchange_rate`` vicoin.

    Both legs share one ``transfer_<id>`` reference and commit together.
    """
    rate = config.exchange_rate
    validate_amount(icoin_amount, field="icoin_amount", maximum=config.max_conversion)
    if icoin_amount < config.min_conversion:
        raise InvalidInputError(
            f"Minimum transfer is {config.min_conversion} Icoins",
            field="icoin_amount",
            minimum=config.min_conversion,
        )
    if icoin_amount % rate:
        raise InvalidInputError(
            f"Amount must be divisible by {rate}",
            field="icoin_amount",
            exchange_rate=rate,
        )
    vicoin_amount = icoin_amount // rate
    reference_id = f"transfer_{uuid.uuid4()}"

    with atomic_unit(engine, lock_timeout_ms=config.lock_timeout_ms) as session:
        debit = atomic_adjust(
            session,
            account_id,
            CoinType.ICOIN,
            -icoin_amount,
            description=f"Converted to {vicoin_amount} Vicoins",
            reference_id=reference_id,
        )
        credit = atomic_adjust(
            session,
            account_id,
            CoinType.VICOIN,
            vicoin_amount,
            description=f"Converted from {icoin_amount} Icoins",
            reference_id=reference_id,
        )

    logger.info("Converted %d icoin → %d vicoin for %s", icoin_amount, vicoin_amount, account_id)
    return ConversionResult(
        icoin_spent=icoin_amount,
        vicoin_received=vicoin_amount,
        new_icoin_balance=debit.balance_after,
        new_vicoin_balance=credit.balance_after,
        exchange_rate=rate,
        reference_id=reference_id,
    )
