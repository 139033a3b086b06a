"""Initial ledger schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamp(name: str = "created_at") -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now())


def upgrade() -> None:
    """Create accounts, journal, reward/cap tracking, tips, payouts,
    revenue shares, referrals and notifications."""
    op.create_table(
        "accounts",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("vicoin_balance", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("icoin_balance", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("kyc_status", sa.String(20), nullable=False, server_default="none"),
        _timestamp(),
        _timestamp("updated_at"),
        sa.CheckConstraint("vicoin_balance >= 0", name="ck_accounts_vicoin_non_negative"),
        sa.CheckConstraint("icoin_balance >= 0", name="ck_accounts_icoin_non_negative"),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("account_id", sa.String(64), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("coin_type", sa.String(10), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("balance_after", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("reference_id", sa.String(128)),
        _timestamp(),
        sa.CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
    )
    op.create_index(
        "ix_transactions_account_time", "transactions", ["account_id", "created_at"]
    )
    op.create_index("ix_transactions_reference", "transactions", ["reference_id"])

    op.create_table(
        "reward_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("account_id", sa.String(64), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("content_id", sa.String(128), nullable=False),
        sa.Column("reward_type", sa.String(32), nullable=False),
        sa.Column("coin_type", sa.String(10), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("attention_score", sa.Float()),
        sa.Column(
            "transaction_id", sa.Integer(), sa.ForeignKey("transactions.id"), nullable=False
        ),
        _timestamp(),
        sa.UniqueConstraint(
            "account_id", "content_id", "reward_type", name="uq_reward_logs_replay"
        ),
    )
    op.create_index(
        "ix_reward_logs_account_time", "reward_logs", ["account_id", "created_at"]
    )

    op.create_table(
        "daily_caps",
        sa.Column("account_id", sa.String(64), sa.ForeignKey("accounts.id"), primary_key=True),
        sa.Column("day", sa.Date(), primary_key=True),
        sa.Column("icoin_earned", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("vicoin_earned", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("promo_views_used", sa.Integer(), nullable=False, server_default="0"),
    )

    op.create_table(
        "tips",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tipper_id", sa.String(64), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("creator_id", sa.String(64), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("content_id", sa.String(128), nullable=False),
        sa.Column("coin_type", sa.String(10), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("tipper_balance_after", sa.Integer(), nullable=False),
        sa.Column("idempotency_key", sa.String(128)),
        _timestamp(),
        sa.UniqueConstraint("tipper_id", "idempotency_key", name="uq_tips_idempotency"),
    )
    op.create_index("ix_tips_creator_time", "tips", ["creator_id", "created_at"])

    op.create_table(
        "payouts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("account_id", sa.String(64), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column(
            "transaction_id", sa.Integer(), sa.ForeignKey("transactions.id"), nullable=False
        ),
        sa.Column("coin_type", sa.String(10), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("method", sa.String(20), nullable=False),
        sa.Column("details", postgresql.JSONB()),
        sa.Column("status", sa.String(20), nullable=False, server_default="processing"),
        sa.Column("failure_reason", sa.Text()),
        _timestamp(),
        _timestamp("updated_at"),
    )
    op.create_index("ix_payouts_account_time", "payouts", ["account_id", "created_at"])
    op.create_index("ix_payouts_status", "payouts", ["status"])

    op.create_table(
        "revenue_shares",
        sa.Column("content_id", sa.String(128), primary_key=True),
        sa.Column("creator_id", sa.String(64), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("promo_view_count", sa.Integer(), nullable=False),
        sa.Column("attention_score", sa.Float()),
        sa.Column("total_revenue", sa.Numeric(18, 4), nullable=False),
        sa.Column("creator_share", sa.Integer(), nullable=False),
        sa.Column("platform_share", sa.Integer(), nullable=False),
        sa.Column("transaction_id", sa.Integer(), sa.ForeignKey("transactions.id")),
        _timestamp(),
    )

    op.create_table(
        "referral_codes",
        sa.Column("code", sa.String(16), primary_key=True),
        sa.Column("account_id", sa.String(64), nullable=False, unique=True),
        sa.Column("uses_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp(),
    )

    op.create_table(
        "referrals",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("referrer_id", sa.String(64), nullable=False),
        sa.Column("referred_id", sa.String(64), nullable=False, unique=True),
        sa.Column("code", sa.String(16), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("commission_rate", sa.Numeric(4, 2), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        _timestamp(),
    )
    op.create_index("ix_referrals_referrer", "referrals", ["referrer_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("account_id", sa.String(64), nullable=False),
        sa.Column("kind", sa.String(32), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("body", sa.Text()),
        sa.Column("data", postgresql.JSONB()),
        sa.Column("read", sa.Boolean(), server_default=sa.false()),
        _timestamp(),
    )
    op.create_index(
        "ix_notifications_account_time", "notifications", ["account_id", "created_at"]
    )


def downgrade() -> None:
    """Drop every ledger table, dependents first."""
    op.drop_index("ix_notifications_account_time", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_referrals_referrer", table_name="referrals")
    op.drop_table("referrals")
    op.drop_table("referral_codes")
    op.drop_table("revenue_shares")
    op.drop_index("ix_payouts_status", table_name="payouts")
    op.drop_index("ix_payouts_account_time", table_name="payouts")
    op.drop_table("payouts")
    op.drop_index("ix_tips_creator_time", table_name="tips")
    op.drop_table("tips")
    op.drop_table("daily_caps")
    op.drop_index("ix_reward_logs_account_time", table_name="reward_logs")
    op.drop_table("reward_logs")
    op.drop_index("ix_transactions_reference", table_name="transactions")
    op.drop_index("ix_transactions_account_time", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("accounts")
