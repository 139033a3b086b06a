"""
coinvault.api.routes.tips — Viewer → creator tips
==================================================
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel, Field
from sqlalchemy import Engine

from coinvault.api.deps import (
    get_config,
    get_current_account,
    get_engine,
    get_notifier,
    run_ledger,
)
from coinvault.config import CoinVaultConfig
from coinvault.services import tip_service
from coinvault.services.notification_service import Notifier

router = APIRouter(prefix="/tips", tags=["tips"])


class TipRequest(BaseModel):
    creator_id: str = Field(min_length=1, max_length=64)
    content_id: str = Field(min_length=1, max_length=128)
    amount: int
    coin_type: str = "vicoin"


@router.post("")
async def tip_creator(
    body: TipRequest,
    idempotency_key: Annotated[str | None, Header(max_length=128)] = None,
    account_id: str = Depends(get_current_account),
    engine: Engine = Depends(get_engine),
    cfg: CoinVaultConfig = Depends(get_config),
    notifier: Notifier = Depends(get_notifier),
):
    result = await run_ledger(
        cfg,
        tip_service.tip_creator,
        engine,
        cfg,
        account_id,
        body.creator_id,
        body.content_id,
        body.amount,
        body.coin_type,
        idempotency_key=idempotency_key,
        notifier=notifier,
    )
    return {
        "success": True,
        "tip_id": result.tip_id,
        "amount": result.amount,
        "coin_type": result.coin_type,
        "new_balance": result.new_balance,
        "replayed": result.replayed,
    }
