"""
tests/test_config.py — YAML Config Loader Tests
================================================
"""

from __future__ import annotations

import dataclasses
from pathlib import Path

import pytest

from coinvault.config import CoinVaultConfig, load_config


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadConfig:
    def test_missing_file_has_hint(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="config.yaml.example"):
            load_config(tmp_path / "nope.yaml")

    def test_empty_file_uses_defaults(self, tmp_path):
        assert load_config(_write(tmp_path, "")) == CoinVaultConfig()

    def test_overrides(self, tmp_path):
        cfg = load_config(_write(tmp_path, """
economy:
  daily_limits: {icoin: 200, gold: 5}
  max_tip_amount: 500
payouts:
  minimums: {vicoin: 250}
  methods: [paypal]
revenue_share:
  creator: "0.60"
  platform: "0.40"
timeouts:
  lock_timeout_ms: 1500
notifications:
  webhook_url: https://relay.test/notify
"""))
        assert cfg.daily_limits == {"icoin": 200, "vicoin": 50}
        assert cfg.max_tip_amount == 500
        assert cfg.min_payout_for("vicoin") == 250
        assert cfg.min_payout_for("icoin") == 1000
        assert cfg.payout_methods == ("paypal",)
        assert cfg.creator_revenue_share == "0.60"
        assert cfg.lock_timeout_ms == 1500
        assert cfg.notification_webhook_url == "https://relay.test/notify"

    def test_shipped_example_matches_defaults(self):
        example = Path(__file__).resolve().parent.parent / "config.yaml.example"
        assert load_config(example) == CoinVaultConfig()

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            CoinVaultConfig().max_tip_amount = 1
