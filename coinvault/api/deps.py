"""
coinvault.api.deps — FastAPI dependency injection
==================================================

The acting account is always the ``sub`` claim of a verified bearer token,
never a field of the request body.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable
from functools import lru_cache
from typing import Annotated, ParamSpec, TypeVar

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from coinvault.config import CoinVaultConfig, load_config
from coinvault.database.engine import create_db_engine, run_db
from coinvault.errors import LedgerBusyError
from coinvault.services.notification_service import Notifier, build_notifier
from coinvault.services.payout_service import LoggingPaymentRail, PaymentRail

P = ParamSpec("P")
T = TypeVar("T")

_WEAK_SECRETS = frozenset({
    "coinvault-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

# accounts.id is VARCHAR(64)
_MAX_SUBJECT_LENGTH = 64

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> CoinVaultConfig:
    return load_config(os.getenv("COINVAULT_CONFIG", "config.yaml"))


def get_notifier(
    engine: Annotated[Engine, Depends(get_engine)],
    cfg: Annotated[CoinVaultConfig, Depends(get_config)],
) -> Notifier:
    return build_notifier(
        engine, cfg.notification_webhook_url, timeout=cfg.request_timeout_seconds
    )


def get_payment_rail() -> PaymentRail:
    return LoggingPaymentRail()


def _decode_bearer(authorization: str | None) -> dict:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")


def get_current_account(
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """Validate the JWT and return the acting account id. Raises 401 if invalid."""
    payload = _decode_bearer(authorization)
    account_id = payload.get("sub")
    if not account_id:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Token has no subject")
    account_id = str(account_id)
    if len(account_id) > _MAX_SUBJECT_LENGTH:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Token subject too long")
    return account_id


def get_service_caller(
    authorization: Annotated[str | None, Header()] = None,
) -> dict:
    """Trusted back-office callers (ad server, payment rail) carry ``is_service``."""
    payload = _decode_bearer(authorization)
    if not payload.get("is_service"):
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Service token required")
    return payload


async def run_ledger(
    cfg: CoinVaultConfig, func: Callable[P, T], *args: P.args, **kwargs: P.kwargs
) -> T:
    """Run a ledger operation off the event loop, bounded by the request timeout.

    On timeout the worker thread is not cancelled and may still commit, so the
    caller gets a retryable :class:`LedgerBusyError`.
    """
    try:
        return await asyncio.wait_for(
            run_db(func, *args, **kwargs), timeout=cfg.request_timeout_seconds
        )
    except TimeoutError:
        raise LedgerBusyError(
            "Request timed out waiting for the ledger",
            timeout_seconds=cfg.request_timeout_seconds,
        ) from None
