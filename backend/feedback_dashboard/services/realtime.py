import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    record: dict[str, Any]
    event: str = "INSERT"
    committed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Listener = Callable[[ChangeEvent], None]


class Subscription:
    def __init__(self, feed: "ChangeFeed", key: tuple[str, str], listener: Listener):
        self._feed = feed
        self.key = key
        self.listener = listener

    def unsubscribe(self) -> None:
        self._feed._remove(self)


class ChangeFeed:
    """In-process insert feed, keyed by table and owner username.

    Listeners run synchronously inside `publish()` and must not block; the
    notification bridge only enqueues the event.
    """

    def __init__(self):
        self._listeners: dict[tuple[str, str], list[Subscription]] = {}

    def subscribe(self, table: str, owner: str, listener: Listener) -> Subscription:
        subscription = Subscription(self, (table, owner), listener)
        self._listeners.setdefault(subscription.key, []).append(subscription)
        logger.debug("Subscribed to %s inserts for %s", table, owner)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        subscriptions = self._listeners.get(subscription.key, [])
        if subscription in subscriptions:
            subscriptions.remove(subscription)
        if not subscriptions:
            self._listeners.pop(subscription.key, None)

    def publish(self, table: str, owner: str, record: dict[str, Any]) -> int:
        event = ChangeEvent(table=table, record=record)
        delivered = 0
        for subscription in list(self._listeners.get((table, owner), [])):
            try:
                subscription.listener(event)
                delivered += 1
            except Exception:
                logger.exception("Change listener failed for %s/%s", table, owner)
        return delivered

    def subscriber_count(self, table: str, owner: str) -> int:
        return len(self._listeners.get((table, owner), []))


change_feed = ChangeFeed()
