"""
coinvault.api.routes.wallet — Balances, history, daily usage, conversion
=========================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy import Engine

from coinvault.api.deps import get_config, get_current_account, get_engine, run_ledger
from coinvault.config import CoinVaultConfig
from coinvault.services import conversion_service, daily_cap, ledger_service

router = APIRouter(prefix="/wallet", tags=["wallet"])


class ConvertRequest(BaseModel):
    icoin_amount: int


@router.get("")
def get_wallet(
    account_id: str = Depends(get_current_account),
    engine: Engine = Depends(get_engine),
):
    return ledger_service.get_balances(engine, account_id)


@router.get("/transactions")
def get_transactions(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    account_id: str = Depends(get_current_account),
    engine: Engine = Depends(get_engine),
):
    """Newest-first journal page for the caller."""
    rows, total = ledger_service.get_transactions(
        engine, account_id, limit=page_size, offset=(page - 1) * page_size
    )
    return {
        "total": total,
        "page": page,
        "page_size": page_size,
        "transactions": [
            {
                "id": tx.id,
                "type": tx.kind,
                "coin_type": tx.coin_type,
                "amount": tx.amount,
                "balance_after": tx.balance_after,
                "description": tx.description,
                "reference_id": tx.reference_id,
                "created_at": tx.created_at.isoformat() if tx.created_at else None,
            }
            for tx in rows
        ],
    }


@router.get("/daily")
def get_daily_usage(
    account_id: str = Depends(get_current_account),
    engine: Engine = Depends(get_engine),
    cfg: CoinVaultConfig = Depends(get_config),
):
    return daily_cap.daily_usage(
        engine,
        account_id,
        daily_limits=cfg.daily_limits,
        promo_view_limit=cfg.daily_promo_view_limit,
    )


@router.post("/convert")
async def convert(
    body: ConvertRequest,
    account_id: str = Depends(get_current_account),
    engine: Engine = Depends(get_engine),
    cfg: CoinVaultConfig = Depends(get_config),
):
    result = await run_ledger(
        cfg, conversion_service.convert_coins, engine, cfg, account_id, body.icoin_amount
    )
    return {
        "success": True,
        "icoin_spent": result.icoin_spent,
        "vicoin_received": result.vicoin_received,
        "new_icoin_balance": result.new_icoin_balance,
        "new_vicoin_balance": result.new_vicoin_balance,
        "exchange_rate": result.exchange_rate,
    }
