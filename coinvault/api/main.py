"""
coinvault.api.main — FastAPI application entry point
=====================================================

Run with::

    uvicorn coinvault.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from coinvault.api.deps import get_engine  # noqa: E402
from coinvault.api.routes.payouts import router as payouts_router  # noqa: E402
from coinvault.api.routes.referrals import router as referrals_router  # noqa: E402
from coinvault.api.routes.revenue import router as revenue_router  # noqa: E402
from coinvault.api.routes.rewards import router as rewards_router  # noqa: E402
from coinvault.api.routes.tips import router as tips_router  # noqa: E402
from coinvault.api.routes.wallet import router as wallet_router  # noqa: E402
from coinvault.errors import (  # noqa: E402
    AccountNotFoundError,
    AlreadyClaimedError,
    AlreadyReferredError,
    AlreadySharedError,
    BelowMinimumViewsError,
    DailyLimitReachedError,
    InvalidPayoutStateError,
    KycRequiredError,
    LedgerBusyError,
    LedgerError,
    PayoutNotFoundError,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = 1

# First match wins; anything else derived from LedgerError is a 400.
_STATUS_BY_ERROR: list[tuple[type[LedgerError], int]] = [
    (BelowMinimumViewsError, 200),
    (AlreadyClaimedError, 409),
    (AlreadySharedError, 409),
    (AlreadyReferredError, 409),
    (InvalidPayoutStateError, 409),
    (DailyLimitReachedError, 429),
    (KycRequiredError, 403),
    (AccountNotFoundError, 404),
    (PayoutNotFoundError, 404),
    (LedgerBusyError, 503),
]


def status_for(exc: LedgerError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 400


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — warm the DB engine."""
    engine = get_engine()
    logger.info("CoinVault API started — engine ready (%s)", engine.url.database)
    yield
    logger.info("CoinVault API shutting down")


app = FastAPI(
    title="CoinVault Ledger API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    status_code = status_for(exc)
    headers = {"Retry-After": str(RETRY_AFTER_SECONDS)} if exc.retryable else None
    if status_code >= 500:
        logger.warning("%s %s → %s: %s", request.method, request.url.path,
                       exc.code, exc.message)
    return JSONResponse(exc.to_dict(), status_code=status_code, headers=headers)


# Mount routers
app.include_router(wallet_router, prefix="/api")
app.include_router(rewards_router, prefix="/api")
app.include_router(tips_router, prefix="/api")
app.include_router(payouts_router, prefix="/api")
app.include_router(revenue_router, prefix="/api")
app.include_router(referrals_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
