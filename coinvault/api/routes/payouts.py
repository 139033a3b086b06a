"""
coinvault.api.routes.payouts — Withdrawal requests and payment-rail callbacks
==============================================================================
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import Engine

from coinvault.api.deps import (
    get_config,
    get_current_account,
    get_engine,
    get_notifier,
    get_payment_rail,
    get_service_caller,
    run_ledger,
)
from coinvault.config import CoinVaultConfig
from coinvault.database.models import Payout
from coinvault.services import payout_service
from coinvault.services.notification_service import Notifier
from coinvault.services.payout_service import PaymentRail

router = APIRouter(prefix="/payouts", tags=["payouts"])


class PayoutRequestBody(BaseModel):
    amount: int
    coin_type: str = "vicoin"
    method: str
    payout_details: dict[str, Any] = Field(default_factory=dict)


class PayoutFailure(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


def _payout_dict(payout: Payout) -> dict:
    return {
        "payout_id": payout.id,
        "account_id": payout.account_id,
        "amount": payout.amount,
        "coin_type": payout.coin_type,
        "method": payout.method,
        "status": payout.status,
        "failure_reason": payout.failure_reason,
    }


@router.post("")
async def request_payout(
    body: PayoutRequestBody,
    account_id: str = Depends(get_current_account),
    engine: Engine = Depends(get_engine),
    cfg: CoinVaultConfig = Depends(get_config),
    rail: PaymentRail = Depends(get_payment_rail),
    notifier: Notifier = Depends(get_notifier),
):
    result = await run_ledger(
        cfg,
        payout_service.request_payout,
        engine,
        cfg,
        account_id,
        body.amount,
        body.coin_type,
        body.method,
        body.payout_details,
        rail=rail,
        notifier=notifier,
    )
    return {
        "success": True,
        "transaction_id": result.transaction_id,
        "payout_id": result.payout_id,
        "amount": result.amount,
        "coin_type": result.coin_type,
        "method": result.method,
        "status": result.status,
        "estimated_arrival": result.estimated_arrival,
        "new_balance": result.new_balance,
    }


@router.post("/{payout_id}/complete")
async def complete_payout(
    payout_id: str,
    service: dict = Depends(get_service_caller),
    engine: Engine = Depends(get_engine),
    cfg: CoinVaultConfig = Depends(get_config),
    notifier: Notifier = Depends(get_notifier),
):
    payout = await run_ledger(
        cfg, payout_service.complete_payout, engine, cfg, payout_id, notifier=notifier
    )
    return _payout_dict(payout)


@router.post("/{payout_id}/fail")
async def fail_payout(
    payout_id: str,
    body: PayoutFailure,
    service: dict = Depends(get_service_caller),
    engine: Engine = Depends(get_engine),
    cfg: CoinVaultConfig = Depends(get_config),
    notifier: Notifier = Depends(get_notifier),
):
    payout = await run_ledger(
        cfg,
        payout_service.fail_payout,
        engine,
        cfg,
        payout_id,
        body.reason,
        notifier=notifier,
    )
    return _payout_dict(payout)
