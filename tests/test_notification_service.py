"""
tests/test_notification_service.py — Notification Emitter Tests
================================================================
"""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import httpx
import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from coinvault.database.models import Notification
from coinvault.services.notification_service import (
    BalanceNotification,
    DatabaseNotifier,
    FanoutNotifier,
    WebhookNotifier,
    build_notifier,
    emit,
    tip_notification,
)


def _note() -> BalanceNotification:
    return tip_notification("creator", "tip-1", 25, "vicoin", "video-1")


class TestEmit:
    def test_none_notifier_is_a_no_op(self):
        assert emit(None, _note()) is False

    def test_failure_is_swallowed(self):
        notifier = MagicMock()
        notifier.send.side_effect = RuntimeError("down")
        assert emit(notifier, _note()) is False

    def test_success(self):
        notifier = MagicMock()
        assert emit(notifier, _note()) is True
        notifier.send.assert_called_once()


class TestDatabaseNotifier:
    def test_writes_inbox_row(self, db_engine):
        DatabaseNotifier(db_engine).send(_note())
        with Session(db_engine) as session:
            row = session.scalar(select(Notification))
            assert row.account_id == "creator"
            assert row.kind == "earnings"
            assert row.body == "Someone tipped you 25 Vicoins"
            assert row.data["tip_id"] == "tip-1"
            assert row.read is False


class TestWebhookNotifier:
    def test_posts_json(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(204)

        notifier = WebhookNotifier(
            "https://relay.test/notify", timeout=1.0, transport=httpx.MockTransport(handler)
        )
        notifier.send(_note())

        assert len(seen) == 1
        assert seen[0].method == "POST"
        assert str(seen[0].url) == "https://relay.test/notify"
        payload = json.loads(seen[0].content)
        assert payload["account_id"] == "creator"
        assert payload["data"]["tip_id"] == "tip-1"

    def test_http_error_raises_from_send(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500))
        notifier = WebhookNotifier("https://relay.test/notify", transport=transport)
        with pytest.raises(httpx.HTTPStatusError):
            notifier.send(_note())

    def test_http_error_reported_by_emit(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500))
        notifier = WebhookNotifier("https://relay.test/notify", transport=transport)
        assert emit(notifier, _note()) is False


class TestFanout:
    def test_one_failing_channel_does_not_block_others(self):
        broken, healthy = MagicMock(), MagicMock()
        broken.send.side_effect = RuntimeError("down")
        FanoutNotifier(broken, healthy).send(_note())
        healthy.send.assert_called_once()

    def test_build_notifier(self, db_engine):
        assert isinstance(build_notifier(db_engine), DatabaseNotifier)
        assert isinstance(build_notifier(db_engine, "https://relay.test"), FanoutNotifier)
