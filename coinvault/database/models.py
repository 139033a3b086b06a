"""
coinvault.database.models — SQLAlchemy 2.0 Data Models
=======================================================

Tables:
- accounts          — Per-user vicoin/icoin balances + KYC status
- transactions      — Append-only ledger journal (one row per balance change)
- reward_logs       — Granted rewards; UNIQUE(account, content, reward type)
- daily_caps        — Per-account, per-UTC-day issuance counters
- tips              — Tip records with optional client idempotency key
- payouts           — Withdrawal records handed to the payment rail
- revenue_shares    — One ad-revenue split per content item
- referral_codes    — One shareable code per account
- referrals         — Referrer → referred relationship (referred once)
- notifications     — Inbox written by the database notifier
"""

from __future__ import annotations

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _uuid() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all coinvault ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class CoinType(enum.StrEnum):
    """The two independent denominations tracked per account."""
    VICOIN = "vicoin"
    ICOIN = "icoin"


class TransactionKind(enum.StrEnum):
    EARNED = "earned"
    SPENT = "spent"
    WITHDRAWN = "withdrawn"
    EARNING = "earning"


class RewardType(enum.StrEnum):
    """Behaviours that can be rewarded.  ``AD_REVENUE`` is written only by
    the revenue-share path and cannot be claimed directly."""
    PROMO_VIEW = "promo_view"
    TASK_COMPLETE = "task_complete"
    REFERRAL = "referral"
    MILESTONE = "milestone"
    DAILY_BONUS = "daily_bonus"
    AD_REVENUE = "ad_revenue"


class KycStatus(enum.StrEnum):
    NONE = "none"
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class PayoutStatus(enum.StrEnum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ReferralStatus(enum.StrEnum):
    ACTIVE = "active"
    EXPIRED = "expired"


# ---------------------------------------------------------------------------
# Accounts: one row per user, created on first balance-affecting event
# ---------------------------------------------------------------------------
class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    vicoin_balance: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    icoin_balance: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    kyc_status: Mapped[str] = mapped_column(
        String(20), default=KycStatus.NONE.value, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("vicoin_balance >= 0", name="ck_accounts_vicoin_non_negative"),
        CheckConstraint("icoin_balance >= 0", name="ck_accounts_icoin_non_negative"),
    )

    def balance_of(self, coin_type: str) -> int:
        if coin_type == CoinType.VICOIN:
            return self.vicoin_balance
        return self.icoin_balance

    def set_balance(self, coin_type: str, value: int) -> None:
        if coin_type == CoinType.VICOIN:
            self.vicoin_balance = value
        else:
            self.icoin_balance = value

    def __repr__(self) -> str:
        return (
            f"<Account id={self.id!r} vicoin={self.vicoin_balance} "
            f"icoin={self.icoin_balance}>"
        )


# ---------------------------------------------------------------------------
# Transactions: append-only journal
# ---------------------------------------------------------------------------
class Transaction(Base):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("accounts.id"), nullable=False
    )
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    coin_type: Mapped[str] = mapped_column(String(10), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    reference_id: Mapped[str | None] = mapped_column(String(128), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
        Index("ix_transactions_account_time", "account_id", "created_at"),
        Index("ix_transactions_reference", "reference_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Transaction {self.kind} {self.amount} {self.coin_type} "
            f"account={self.account_id!r} ref={self.reference_id!r}>"
        )


# ---------------------------------------------------------------------------
# RewardLog: replay-protection key lives here
# ---------------------------------------------------------------------------
class RewardLog(Base):
    __tablename__ = "reward_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("accounts.id"), nullable=False
    )
    content_id: Mapped[str] = mapped_column(String(128), nullable=False)
    reward_type: Mapped[str] = mapped_column(String(32), nullable=False)
    coin_type: Mapped[str] = mapped_column(String(10), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    attention_score: Mapped[float | None] = mapped_column(Float, default=None)
    transaction_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("transactions.id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "account_id", "content_id", "reward_type", name="uq_reward_logs_replay"
        ),
        Index("ix_reward_logs_account_time", "account_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<RewardLog account={self.account_id!r} content={self.content_id!r} "
            f"type={self.reward_type} amount={self.amount}>"
        )


# ---------------------------------------------------------------------------
# DailyCap: reset implicitly by the date key
# ---------------------------------------------------------------------------
class DailyCap(Base):
    __tablename__ = "daily_caps"

    account_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("accounts.id"), primary_key=True
    )
    day: Mapped[date] = mapped_column(Date, primary_key=True)
    icoin_earned: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    vicoin_earned: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    promo_views_used: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def earned(self, coin_type: str) -> int:
        if coin_type == CoinType.VICOIN:
            return self.vicoin_earned
        return self.icoin_earned

    def add_earned(self, coin_type: str, amount: int) -> None:
        if coin_type == CoinType.VICOIN:
            self.vicoin_earned += amount
        else:
            self.icoin_earned += amount

    def __repr__(self) -> str:
        return f"<DailyCap account={self.account_id!r} day={self.day}>"


# ---------------------------------------------------------------------------
# Tips
# ---------------------------------------------------------------------------
class Tip(Base):
    __tablename__ = "tips"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    tipper_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("accounts.id"), nullable=False
    )
    creator_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("accounts.id"), nullable=False
    )
    content_id: Mapped[str] = mapped_column(String(128), nullable=False)
    coin_type: Mapped[str] = mapped_column(String(10), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    tipper_balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    idempotency_key: Mapped[str | None] = mapped_column(String(128), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("tipper_id", "idempotency_key", name="uq_tips_idempotency"),
        Index("ix_tips_creator_time", "creator_id", "created_at"),
    )


# ---------------------------------------------------------------------------
# Payouts
# ---------------------------------------------------------------------------
class Payout(Base):
    __tablename__ = "payouts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    account_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("accounts.id"), nullable=False
    )
    transaction_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("transactions.id"), nullable=False
    )
    coin_type: Mapped[str] = mapped_column(String(10), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    method: Mapped[str] = mapped_column(String(20), nullable=False)
    details: Mapped[dict] = mapped_column(JSONB, default=dict)
    status: Mapped[str] = mapped_column(
        String(20), default=PayoutStatus.PROCESSING.value, nullable=False
    )
    failure_reason: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_payouts_account_time", "account_id", "created_at"),
        Index("ix_payouts_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Payout id={self.id} {self.amount} {self.coin_type} {self.status}>"


# ---------------------------------------------------------------------------
# RevenueShare: content_id is the idempotency key
# ---------------------------------------------------------------------------
class RevenueShare(Base):
    __tablename__ = "revenue_shares"

    content_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    creator_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("accounts.id"), nullable=False
    )
    promo_view_count: Mapped[int] = mapped_column(Integer, nullable=False)
    attention_score: Mapped[float | None] = mapped_column(Float, default=None)
    total_revenue: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    creator_share: Mapped[int] = mapped_column(Integer, nullable=False)
    platform_share: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("transactions.id"), default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


# ---------------------------------------------------------------------------
# Referrals
# ---------------------------------------------------------------------------
class ReferralCode(Base):
    __tablename__ = "referral_codes"

    code: Mapped[str] = mapped_column(String(16), primary_key=True)
    account_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    uses_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class Referral(Base):
    __tablename__ = "referrals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    referrer_id: Mapped[str] = mapped_column(String(64), nullable=False)
    referred_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    code: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=ReferralStatus.ACTIVE.value, nullable=False
    )
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(4, 2), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_referrals_referrer", "referrer_id"),
    )


# ---------------------------------------------------------------------------
# Notifications: written by DatabaseNotifier
# ---------------------------------------------------------------------------
class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    body: Mapped[str] = mapped_column(Text, default="")
    data: Mapped[dict] = mapped_column(JSONB, default=dict)
    read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_notifications_account_time", "account_id", "created_at"),
    )
