"""
coinvault.api.routes.revenue — Ad revenue sharing (service callers only)
=========================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import Engine

from coinvault.api.deps import (
    get_config,
    get_engine,
    get_notifier,
    get_service_caller,
    run_ledger,
)
from coinvault.config import CoinVaultConfig
from coinvault.services import revenue_service
from coinvault.services.notification_service import Notifier

router = APIRouter(prefix="/revenue-shares", tags=["revenue"])


class RevenueShareRequest(BaseModel):
    content_id: str = Field(min_length=1, max_length=128)
    creator_id: str = Field(min_length=1, max_length=64)
    promo_view_count: int = Field(ge=0)
    attention_score: float | None = None


@router.post("")
async def share_ad_revenue(
    body: RevenueShareRequest,
    service: dict = Depends(get_service_caller),
    engine: Engine = Depends(get_engine),
    cfg: CoinVaultConfig = Depends(get_config),
    notifier: Notifier = Depends(get_notifier),
):
    result = await run_ledger(
        cfg,
        revenue_service.share_ad_revenue,
        engine,
        cfg,
        body.content_id,
        body.creator_id,
        body.promo_view_count,
        body.attention_score,
        notifier=notifier,
    )
    return {
        "success": True,
        "creator_share": result.creator_share,
        "platform_share": result.platform_share,
        "total_revenue": float(result.total_revenue),
        "new_balance": result.new_balance,
    }
