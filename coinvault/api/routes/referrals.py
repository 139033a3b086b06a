"""
coinvault.api.routes.referrals — Referral codes and relationships
==================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import Engine

from coinvault.api.deps import get_config, get_current_account, get_engine, run_ledger
from coinvault.config import CoinVaultConfig
from coinvault.services import referral_service

router = APIRouter(prefix="/referrals", tags=["referrals"])


class ApplyReferral(BaseModel):
    code: str = Field(min_length=1, max_length=16)


@router.get("/code")
def get_referral_code(
    account_id: str = Depends(get_current_account),
    engine: Engine = Depends(get_engine),
):
    """The caller's shareable code, created on first request."""
    code = referral_service.get_or_create_code(engine, account_id)
    return {"code": code.code, "uses_count": code.uses_count}


@router.post("/apply")
async def apply_referral(
    body: ApplyReferral,
    account_id: str = Depends(get_current_account),
    engine: Engine = Depends(get_engine),
    cfg: CoinVaultConfig = Depends(get_config),
):
    referral = await run_ledger(
        cfg, referral_service.apply_referral, engine, cfg, account_id, body.code
    )
    return {
        "success": True,
        "referrer_id": referral.referrer_id,
        "expires_at": referral.expires_at.isoformat(),
        "message": "Referral code applied! You and your referrer will earn bonus rewards.",
    }


@router.get("")
def list_referrals(
    account_id: str = Depends(get_current_account),
    engine: Engine = Depends(get_engine),
):
    referrals = referral_service.list_referrals(engine, account_id)
    return {
        "total_referrals": len(referrals),
        "referrals": [
            {
                "referred_id": r.referred_id,
                "code": r.code,
                "status": referral_service.effective_status(r),
                "commission_rate": float(r.commission_rate),
                "expires_at": r.expires_at.isoformat(),
            }
            for r in referrals
        ],
    }
