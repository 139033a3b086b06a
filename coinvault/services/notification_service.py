"""
coinvault.services.notification_service — Best-Effort Balance Notifications
============================================================================

Notifications are emitted only after the ledger unit has committed and never
influence its outcome.  A failing channel is logged and swallowed by
:func:`emit`.

Channels:
- ``DatabaseNotifier`` — inbox row in ``notifications`` (own session)
- ``WebhookNotifier``  — JSON POST to an external push/email relay
- ``FanoutNotifier``   — deliver to several channels, independently
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

import httpx
from sqlalchemy.orm import Session

from coinvault.database.models import Notification

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

COIN_LABELS = {"vicoin": "Vicoins", "icoin": "Icoins"}


@dataclass(frozen=True, slots=True)
class BalanceNotification:
    account_id: str
    kind: str
    title: str
    body: str = ""
    data: dict[str, Any] = field(default_factory=dict)


class Notifier(Protocol):
    def send(self, notification: BalanceNotification) -> None: ...


# ---------------------------------------------------------------------------
# Channels
# ---------------------------------------------------------------------------
class DatabaseNotifier:
    """Append an inbox row.  Uses its own session so the ledger unit is
    already closed when this runs."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def send(self, notification: BalanceNotification) -> None:
        with Session(self.engine) as session, session.begin():
            session.add(Notification(
                account_id=notification.account_id,
                kind=notification.kind,
                title=notification.title,
                body=notification.body,
                data=notification.data,
            ))


class WebhookNotifier:
    """POST the notification as JSON to *url*.

    *transport* is handed to :class:`httpx.Client`; tests pass an
    :class:`httpx.MockTransport`.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 2.5,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.transport = transport

    def send(self, notification: BalanceNotification) -> None:
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            resp = client.post(self.url, json=asdict(notification))
            resp.raise_for_status()


class FanoutNotifier:
    def __init__(self, *notifiers: Notifier) -> None:
        self.notifiers = notifiers

    def send(self, notification: BalanceNotification) -> None:
        for notifier in self.notifiers:
            emit(notifier, notification)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def emit(notifier: Notifier | None, notification: BalanceNotification) -> bool:
    """Deliver *notification*; return ``False`` instead of raising."""
    if notifier is None:
        return False
    try:
        notifier.send(notification)
    except Exception:
        logger.exception(
            "Notification %r for %s could not be delivered",
            notification.kind,
            notification.account_id,
        )
        return False
    return True


def coin_label(coin_type: str) -> str:
    return COIN_LABELS.get(coin_type, coin_type)


def reward_notification(
    account_id: str, amount: int, coin_type: str, reward_type: str, content_id: str
) -> BalanceNotification:
    return BalanceNotification(
        account_id=account_id,
        kind="reward",
        title="Reward earned!",
        body=f"You earned {amount} {coin_label(coin_type)}",
        data={
            "amount": amount,
            "coin_type": coin_type,
            "reward_type": reward_type,
            "content_id": content_id,
        },
    )


def tip_notification(
    creator_id: str, tip_id: str, amount: int, coin_type: str, content_id: str
) -> BalanceNotification:
    return BalanceNotification(
        account_id=creator_id,
        kind="earnings",
        title="You received a tip!",
        body=f"Someone tipped you {amount} {coin_label(coin_type)}",
        data={
            "tip_id": tip_id,
            "amount": amount,
            "coin_type": coin_type,
            "content_id": content_id,
        },
    )


def revenue_notification(
    creator_id: str, content_id: str, amount: int, views: int
) -> BalanceNotification:
    return BalanceNotification(
        account_id=creator_id,
        kind="earning",
        title="Ad Revenue Earned!",
        body=f"You earned {amount} Vicoins from {views} promo views!",
        data={"content_id": content_id, "amount": amount, "views": views},
    )


def payout_notification(
    account_id: str, payout_id: str, amount: int, coin_type: str, status: str
) -> BalanceNotification:
    titles = {
        "processing": "Payout requested",
        "completed": "Payout sent",
        "failed": "Payout failed, coins refunded",
    }
    return BalanceNotification(
        account_id=account_id,
        kind="payout",
        title=titles.get(status, "Payout update"),
        body=f"{amount} {coin_label(coin_type)} ({status})",
        data={
            "payout_id": payout_id,
            "amount": amount,
            "coin_type": coin_type,
            "status": status,
        },
    )


def build_notifier(engine: Engine, webhook_url: str | None = None,
                   timeout: float = 2.5) -> Notifier:
    """Database inbox, plus the webhook relay when one is configured."""
    db = DatabaseNotifier(engine)
    if not webhook_url:
        return db
    return FanoutNotifier(db, WebhookNotifier(webhook_url, timeout=timeout))
