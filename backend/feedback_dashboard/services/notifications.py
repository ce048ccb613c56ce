import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field

from feedback_dashboard.services.realtime import ChangeEvent, ChangeFeed, Subscription

logger = logging.getLogger(__name__)

NotificationType = Literal["feedback", "issue", "team", "system"]
Priority = Literal["low", "medium", "high"]

LOW_RATING_THRESHOLD = 3


class Notification(BaseModel):
    id: str
    type: NotificationType
    title: str
    message: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    read: bool = False
    priority: Priority = "medium"


def feedback_notification(record: dict[str, Any]) -> Notification:
    rating = record.get("average_rating")
    low = rating is not None and float(rating) < LOW_RATING_THRESHOLD
    return Notification(
        id=str(record["id"]),
        type="feedback",
        title="New Feedback Received",
        message=f"From {record.get('sender_name') or record.get('sender_email')}",
        priority="high" if low else "medium",
    )


def issue_notification(record: dict[str, Any]) -> Notification:
    return Notification(
        id=str(record["id"]),
        type="issue",
        title="New Issue Created",
        message=record.get("issue_title") or "",
        priority="high",
    )


EVENT_MAPPERS = {
    "feedbacks": feedback_notification,
    "current_issues": issue_notification,
}


class NotificationCenter(BaseModel):
    """Newest-first notification list, capped at `retention` entries."""

    retention: int = Field(default=10, ge=1)
    items: list[Notification] = Field(default_factory=list)

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self.items if not n.read)

    def push(self, notification: Notification) -> None:
        self.items = [n for n in self.items if n.id != notification.id]
        self.items.insert(0, notification)
        del self.items[self.retention:]

    def mark_read(self, notification_id: str) -> bool:
        for notification in self.items:
            if notification.id == notification_id:
                notification.read = True
                return True
        return False

    def mark_all_read(self) -> int:
        changed = 0
        for notification in self.items:
            if not notification.read:
                notification.read = True
                changed += 1
        return changed

    def dismiss(self, notification_id: str) -> bool:
        before = len(self.items)
        self.items = [n for n in self.items if n.id != notification_id]
        return len(self.items) != before

    def clear(self) -> None:
        self.items = []


class NotificationBridge:
    """Feeds one owner's insert events into a `NotificationCenter`.

    Feed callbacks only enqueue; a single consumer task applies the events,
    so synthetic events pushed with `deliver()` go through the same path.
    """

    TABLES = tuple(EVENT_MAPPERS)

    def __init__(self, owner: str, feed: ChangeFeed, retention: int = 10):
        self.owner = owner
        self.feed = feed
        self.center = NotificationCenter(retention=retention)
        self.queue: asyncio.Queue[ChangeEvent] = asyncio.Queue()
        self._subscriptions: list[Subscription] = []
        self._consumer: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    def start(self) -> None:
        if self.running:
            return
        self._subscribe()
        self._consumer = asyncio.get_running_loop().create_task(self._consume())
        logger.info("Notification bridge started for %s", self.owner)

    def _subscribe(self) -> None:
        self._subscriptions = [
            self.feed.subscribe(table, self.owner, self.deliver) for table in self.TABLES
        ]

    def _unsubscribe(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []

    def rename(self, owner: str) -> None:
        """Follow a username change; queued events and the center are kept."""
        self._unsubscribe()
        self.owner = owner
        if self.running:
            self._subscribe()

    def deliver(self, event: ChangeEvent) -> None:
        self.queue.put_nowait(event)

    def apply(self, event: ChangeEvent) -> Notification | None:
        mapper = EVENT_MAPPERS.get(event.table)
        if mapper is None or event.event != "INSERT":
            return None
        notification = mapper(event.record)
        self.center.push(notification)
        return notification

    async def _consume(self) -> None:
        while True:
            event = await self.queue.get()
            try:
                notification = self.apply(event)
                if notification is not None:
                    logger.debug(
                        "Notification %s (%s) for %s",
                        notification.id,
                        notification.priority,
                        self.owner,
                    )
            except Exception:
                logger.exception("Dropping malformed %s event for %s", event.table, self.owner)
            finally:
                self.queue.task_done()

    async def drain(self) -> None:
        await self.queue.join()

    async def stop(self) -> None:
        self._unsubscribe()
        if self._consumer is not None:
            self._consumer.cancel()
            await asyncio.gather(self._consumer, return_exceptions=True)
            self._consumer = None
        logger.info("Notification bridge stopped for %s", self.owner)


class NotificationHub:
    """One bridge per signed-in username, created on first use."""

    def __init__(self, feed: ChangeFeed, retention: int = 10):
        self.feed = feed
        self.retention = retention
        self._bridges: dict[str, NotificationBridge] = {}

    def bridge_for(self, owner: str) -> NotificationBridge:
        bridge = self._bridges.get(owner)
        if bridge is None:
            bridge = NotificationBridge(owner, self.feed, self.retention)
            self._bridges[owner] = bridge
        bridge.start()
        return bridge

    def rename(self, old: str, new: str) -> NotificationBridge | None:
        bridge = self._bridges.pop(old, None)
        if bridge is None:
            return None
        bridge.rename(new)
        self._bridges[new] = bridge
        logger.info("Notification bridge moved from %s to %s", old, new)
        return bridge

    async def close(self) -> None:
        for bridge in self._bridges.values():
            await bridge.stop()
        self._bridges.clear()
