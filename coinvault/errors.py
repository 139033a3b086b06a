"""
coinvault.errors — Domain Exception Taxonomy
=============================================

Every business-rule rejection raised by the services derives from
:class:`LedgerError`.  Each carries a stable ``code`` string, a ``retryable``
flag and a structured ``detail`` dict (limits, current usage, required
minimums) so callers can decide whether to retry, wait, or stop.

Services raise these *inside* the atomic unit, so the unit rolls back and no
partial debit/credit is ever committed.  The HTTP layer maps them to status
codes in :mod:`coinvault.api.main`.
"""

from __future__ import annotations

from typing import Any


class LedgerError(Exception):
    """Base class for all ledger/business-rule failures."""

    code: str = "ledger_error"
    retryable: bool = False

    def __init__(self, message: str, **detail: Any) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": False,
            "error": self.code,
            "message": self.message,
            **self.detail,
        }


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------
class InvalidInputError(LedgerError):
    code = "invalid_input"


class BelowMinimumPayoutError(InvalidInputError):
    code = "below_minimum_payout"


class ReferralNotEligibleError(InvalidInputError):
    code = "referral_not_eligible"


# ---------------------------------------------------------------------------
# Idempotency hits: declined, never retried
# ---------------------------------------------------------------------------
class AlreadyClaimedError(LedgerError):
    code = "already_claimed"


class AlreadySharedError(LedgerError):
    code = "already_shared"


class AlreadyReferredError(LedgerError):
    code = "already_referred"


class BelowMinimumViewsError(LedgerError):
    code = "below_minimum_views"


# ---------------------------------------------------------------------------
# Business rules
# ---------------------------------------------------------------------------
class DailyLimitReachedError(LedgerError):
    code = "daily_limit_reached"


class InsufficientBalanceError(LedgerError):
    code = "insufficient_balance"


class KycRequiredError(LedgerError):
    code = "kyc_required"


class SelfTipNotAllowedError(LedgerError):
    code = "self_tip_not_allowed"


class SelfReferralError(LedgerError):
    code = "self_referral"


class InvalidReferralCodeError(LedgerError):
    code = "invalid_referral_code"


class InvalidPayoutStateError(LedgerError):
    code = "invalid_payout_state"


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------
class AccountNotFoundError(LedgerError):
    code = "account_not_found"


class CreatorNotFoundError(AccountNotFoundError):
    code = "creator_not_found"


class PayoutNotFoundError(LedgerError):
    code = "payout_not_found"


# ---------------------------------------------------------------------------
# Transient
# ---------------------------------------------------------------------------
class LedgerBusyError(LedgerError):
    """Lock wait timed out, deadlock victim, or request deadline exceeded.

    The caller must not assume the operation did or did not commit.
    """

    code = "busy"
    retryable = True
