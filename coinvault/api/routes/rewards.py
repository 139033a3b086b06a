"""
coinvault.api.routes.rewards — Reward issuance
===============================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
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
from coinvault.database.models import RewardType
from coinvault.engine.events import REWARD_TABLE, RewardClaim
from coinvault.errors import InvalidInputError
from coinvault.services import reward_service
from coinvault.services.notification_service import Notifier

router = APIRouter(prefix="/rewards", tags=["rewards"])


class RewardRequest(BaseModel):
    reward_type: str
    content_id: str = Field(min_length=1, max_length=128)
    attention_score: float | None = None
    amount: int | None = None


def _parse_reward_type(value: str) -> RewardType:
    try:
        reward_type = RewardType(value)
    except ValueError:
        reward_type = None
    if reward_type not in REWARD_TABLE:
        raise InvalidInputError(
            f"Invalid reward type: {value}",
            field="reward_type",
            allowed=[t.value for t in REWARD_TABLE],
        )
    return reward_type


@router.post("")
async def issue_reward(
    body: RewardRequest,
    account_id: str = Depends(get_current_account),
    engine: Engine = Depends(get_engine),
    cfg: CoinVaultConfig = Depends(get_config),
    notifier: Notifier = Depends(get_notifier),
):
    claim = RewardClaim(
        account_id=account_id,
        reward_type=_parse_reward_type(body.reward_type),
        content_id=body.content_id,
        attention_score=body.attention_score,
        requested_amount=body.amount,
    )
    result = await run_ledger(
        cfg, reward_service.issue_reward, engine, cfg, claim, notifier=notifier
    )
    return {
        "success": True,
        "amount": result.amount,
        "coin_type": result.coin_type,
        "new_balance": result.new_balance,
        "daily_remaining": result.daily_remaining,
    }
