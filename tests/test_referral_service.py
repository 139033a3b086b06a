"""
tests/test_referral_service.py — Referral Program Tests
========================================================
"""

from __future__ import annotations

import random
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from coinvault.errors import (
    AlreadyReferredError,
    InvalidInputError,
    InvalidReferralCodeError,
    SelfReferralError,
)
from coinvault.services import referral_service
from coinvault.services.referral_service import CODE_ALPHABET, CODE_LENGTH


class TestCodes:
    def test_generate_code_alphabet(self):
        code = referral_service.generate_code(random.Random(5))
        assert len(code) == CODE_LENGTH
        assert set(code) <= set(CODE_ALPHABET)

    def test_get_or_create_is_stable(self, db_engine):
        first = referral_service.get_or_create_code(db_engine, "u1")
        again = referral_service.get_or_create_code(db_engine, "u1")
        assert first.code == again.code
        assert again.uses_count == 0

    def test_collision_is_retried(self, db_engine):
        taken = referral_service.get_or_create_code(
            db_engine, "u1", rng=random.Random(9)
        )
        # Same seed → the first candidate for u2 collides with u1's code.
        fresh = referral_service.get_or_create_code(
            db_engine, "u2", rng=random.Random(9)
        )
        assert fresh.code != taken.code
        assert fresh.account_id == "u2"


class TestApplyReferral:
    def test_applies_code_case_insensitively(self, db_engine, config):
        code = referral_service.get_or_create_code(db_engine, "referrer").code
        referral = referral_service.apply_referral(
            db_engine, config, "newbie", code.lower()
        )
        assert referral.referrer_id == "referrer"
        assert referral.commission_rate == Decimal("0.10")
        expected = datetime.now(UTC) + timedelta(days=90)
        assert abs(referral.expires_at - expected) < timedelta(minutes=1)

        assert referral_service.get_or_create_code(db_engine, "referrer").uses_count == 1
        listed = referral_service.list_referrals(db_engine, "referrer")
        assert [r.referred_id for r in listed] == ["newbie"]
        assert referral_service.effective_status(listed[0]) == "active"

    def test_only_once_per_account(self, db_engine, config):
        a = referral_service.get_or_create_code(db_engine, "a").code
        b = referral_service.get_or_create_code(db_engine, "b").code
        referral_service.apply_referral(db_engine, config, "newbie", a)
        with pytest.raises(AlreadyReferredError):
            referral_service.apply_referral(db_engine, config, "newbie", b)

    def test_own_code_rejected(self, db_engine, config):
        code = referral_service.get_or_create_code(db_engine, "u1").code
        with pytest.raises(SelfReferralError):
            referral_service.apply_referral(db_engine, config, "u1", code)

    def test_unknown_code(self, db_engine, config):
        with pytest.raises(InvalidReferralCodeError):
            referral_service.apply_referral(db_engine, config, "u1", "ZZZZZZZZ")

    def test_blank_code(self, db_engine, config):
        with pytest.raises(InvalidInputError):
            referral_service.apply_referral(db_engine, config, "u1", "  ")

    def test_expired_status_on_read(self, db_engine, config):
        code = referral_service.get_or_create_code(db_engine, "referrer").code
        referral = referral_service.apply_referral(db_engine, config, "newbie", code)
        later = datetime.now(UTC) + timedelta(days=91)
        assert referral_service.effective_status(referral, now=later) == "expired"
