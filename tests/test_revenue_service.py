"""
tests/test_revenue_service.py — Ad Revenue Share Tests
=======================================================
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from conftest import balances, seed_account
from sqlalchemy import select
from sqlalchemy.orm import Session

from coinvault.database.models import RevenueShare, RewardLog, Transaction
from coinvault.errors import (
    AlreadySharedError,
    BelowMinimumViewsError,
    CreatorNotFoundError,
    InvalidInputError,
)
from coinvault.services import revenue_service


@pytest.fixture
def creator(db_engine):
    seed_account(db_engine, "creator", vicoin=10)
    return db_engine


class TestShareAdRevenue:
    def test_default_attention_score(self, creator, config):
        result = revenue_service.share_ad_revenue(creator, config, "ad-1", "creator", 200)
        assert result.total_revenue == Decimal("680")
        assert (result.creator_share, result.platform_share) == (374, 306)
        assert result.new_balance == 384
        assert balances(creator, "creator") == (384, 0)

        with Session(creator) as session:
            tx = session.scalar(select(Transaction))
            assert tx.kind == "earning"
            assert tx.coin_type == "vicoin"
            assert tx.reference_id == "ad_revenue_ad-1"
            log = session.scalar(select(RewardLog))
            assert log.reward_type == "ad_revenue"
            assert log.transaction_id == tx.id
            share = session.get(RevenueShare, "ad-1")
            assert share.creator_share == 374

    def test_supplied_attention_score(self, creator, config):
        result = revenue_service.share_ad_revenue(
            creator, config, "ad-1", "creator", 100, attention_score=100
        )
        # 100 × 2 × 2.0 = 400
        assert (result.creator_share, result.platform_share) == (220, 180)

    def test_zero_attention_score_is_not_defaulted(self, creator, config):
        result = revenue_service.share_ad_revenue(
            creator, config, "ad-1", "creator", 100, attention_score=0
        )
        assert result.total_revenue == Decimal("200")
        assert result.creator_share == 110

    def test_below_minimum_views_declines(self, creator, config):
        with pytest.raises(BelowMinimumViewsError) as exc_info:
            revenue_service.share_ad_revenue(creator, config, "ad-1", "creator", 99)
        assert exc_info.value.detail == {"minimum": 100, "current_views": 99}
        assert balances(creator, "creator") == (10, 0)

    def test_second_share_for_content_rejected(self, creator, config):
        revenue_service.share_ad_revenue(creator, config, "ad-1", "creator", 200)
        with pytest.raises(AlreadySharedError):
            revenue_service.share_ad_revenue(creator, config, "ad-1", "creator", 500)
        assert balances(creator, "creator") == (384, 0)

    def test_unknown_creator(self, db_engine, config):
        with pytest.raises(CreatorNotFoundError):
            revenue_service.share_ad_revenue(db_engine, config, "ad-1", "ghost", 200)

    def test_missing_fields(self, creator, config):
        with pytest.raises(InvalidInputError):
            revenue_service.share_ad_revenue(creator, config, "", "creator", 200)

    def test_view_count_above_maximum_rejected(self, creator, config):
        with pytest.raises(InvalidInputError) as exc_info:
            revenue_service.share_ad_revenue(
                creator, config, "ad-huge", "creator", 10**19, 50
            )
        assert exc_info.value.detail["maximum"] == config.max_promo_views
        assert balances(creator, "creator") == (10, 0)
        with Session(creator) as session:
            assert session.get(RevenueShare, "ad-huge") is None

    def test_view_count_at_maximum_accepted(self, creator, config):
        result = revenue_service.share_ad_revenue(
            creator, config, "ad-max", "creator", config.max_promo_views, 0
        )
        assert result.creator_share == config.max_promo_views * 2 * 55 // 100

    def test_notifies_creator(self, creator, config):
        notifier = MagicMock()
        revenue_service.share_ad_revenue(
            creator, config, "ad-1", "creator", 200, notifier=notifier
        )
        notification = notifier.send.call_args.args[0]
        assert notification.account_id == "creator"
        assert notification.data == {"content_id": "ad-1", "amount": 374, "views": 200}
