"""Tests for realtime notifications."""
import asyncio
import uuid

import pytest

from feedback_dashboard.services.notifications import (
    Notification,
    NotificationBridge,
    NotificationCenter,
    NotificationHub,
    feedback_notification,
    issue_notification,
)
from feedback_dashboard.services.realtime import ChangeEvent, ChangeFeed


def _notification(i):
    return Notification(id=str(i), type="system", title=f"n{i}", message="")


class TestPriority:
    @pytest.mark.parametrize(
        "rating, priority",
        [(2.9, "high"), (0, "high"), (3, "medium"), (4.5, "medium"), (None, "medium")],
    )
    def test_feedback_priority(self, rating, priority):
        record = {"id": uuid.uuid4(), "average_rating": rating, "sender_email": "a@b.io"}
        assert feedback_notification(record).priority == priority

    def test_feedback_message_prefers_sender_name(self):
        record = {"id": 1, "sender_name": "Ann", "sender_email": "ann@b.io"}
        assert feedback_notification(record).message == "From Ann"
        record["sender_name"] = None
        assert feedback_notification(record).message == "From ann@b.io"

    def test_issue_is_always_high(self):
        notification = issue_notification({"id": 7, "issue_title": "Crash"})
        assert notification.priority == "high"
        assert notification.type == "issue"
        assert notification.message == "Crash"


class TestNotificationCenter:
    def test_keeps_ten_most_recent_newest_first(self):
        center = NotificationCenter(retention=10)
        for i in range(12):
            center.push(_notification(i))
        assert [n.id for n in center.items] == [str(i) for i in range(11, 1, -1)]

    def test_mark_read_is_one_way(self):
        center = NotificationCenter()
        center.push(_notification(1))
        assert center.unread_count == 1
        assert center.mark_read("1")
        assert center.mark_read("1")
        assert center.items[0].read
        assert center.unread_count == 0

    def test_mark_read_unknown_id(self):
        assert not NotificationCenter().mark_read("missing")

    def test_mark_all_read_is_idempotent(self):
        center = NotificationCenter()
        for i in range(3):
            center.push(_notification(i))
        center.mark_read("1")
        assert center.mark_all_read() == 2
        assert center.mark_all_read() == 0
        assert center.unread_count == 0

    def test_duplicate_id_replaces_entry(self):
        center = NotificationCenter()
        center.push(_notification(1))
        center.push(_notification(2))
        center.push(_notification(1))
        assert [n.id for n in center.items] == ["1", "2"]

    def test_dismiss(self):
        center = NotificationCenter()
        center.push(_notification(1))
        assert center.dismiss("1")
        assert not center.dismiss("1")
        assert center.items == []


class TestNotificationBridge:
    @pytest.mark.asyncio
    async def test_feed_events_become_notifications(self):
        feed = ChangeFeed()
        bridge = NotificationBridge("alice", feed)
        bridge.start()
        try:
            feed.publish("feedbacks", "alice", {"id": 1, "average_rating": 1, "sender_email": "x@y.io"})
            feed.publish("current_issues", "alice", {"id": 2, "issue_title": "Crash"})
            feed.publish("current_issues", "bob", {"id": 3, "issue_title": "Not mine"})
            await bridge.drain()
        finally:
            await bridge.stop()

        assert [n.id for n in bridge.center.items] == ["2", "1"]
        assert [n.type for n in bridge.center.items] == ["issue", "feedback"]
        assert feed.subscriber_count("feedbacks", "alice") == 0

    @pytest.mark.asyncio
    async def test_synthetic_events_use_the_same_path(self):
        bridge = NotificationBridge("alice", ChangeFeed(), retention=3)
        bridge.start()
        try:
            for i in range(5):
                bridge.deliver(ChangeEvent("current_issues", {"id": i, "issue_title": f"#{i}"}))
            await bridge.drain()
        finally:
            await bridge.stop()
        assert [n.id for n in bridge.center.items] == ["4", "3", "2"]

    @pytest.mark.asyncio
    async def test_malformed_event_does_not_stop_consumer(self):
        bridge = NotificationBridge("alice", ChangeFeed())
        bridge.start()
        try:
            bridge.deliver(ChangeEvent("feedbacks", {"sender_email": "no-id@x.io"}))
            bridge.deliver(ChangeEvent("current_issues", {"id": 9, "issue_title": "ok"}))
            await bridge.drain()
            assert bridge.running
        finally:
            await bridge.stop()
        assert [n.id for n in bridge.center.items] == ["9"]

    def test_unknown_tables_are_ignored(self):
        bridge = NotificationBridge("alice", ChangeFeed())
        assert bridge.apply(ChangeEvent("users", {"id": 1})) is None
        assert bridge.center.items == []


class TestNotificationHub:
    @pytest.mark.asyncio
    async def test_one_bridge_per_owner(self):
        feed = ChangeFeed()
        hub = NotificationHub(feed)
        first = hub.bridge_for("alice")
        assert hub.bridge_for("alice") is first
        assert hub.bridge_for("bob") is not first
        assert feed.subscriber_count("current_issues", "alice") == 1
        await hub.close()
        assert feed.subscriber_count("current_issues", "alice") == 0
        await asyncio.sleep(0)
        assert not first.running

    @pytest.mark.asyncio
    async def test_rename_moves_subscriptions_and_keeps_history(self):
        feed = ChangeFeed()
        hub = NotificationHub(feed)
        bridge = hub.bridge_for("alice")
        try:
            feed.publish("current_issues", "alice", {"id": 1, "issue_title": "Old"})
            await bridge.drain()

            assert hub.rename("alice", "alicia") is bridge
            assert bridge.owner == "alicia"
            assert feed.subscriber_count("current_issues", "alice") == 0
            assert feed.subscriber_count("feedbacks", "alicia") == 1

            feed.publish("current_issues", "alicia", {"id": 2, "issue_title": "New"})
            await bridge.drain()
            assert [n.id for n in bridge.center.items] == ["2", "1"]
            assert hub.bridge_for("alicia") is bridge
        finally:
            await hub.close()

    def test_rename_unknown_owner(self):
        assert NotificationHub(ChangeFeed()).rename("ghost", "spirit") is None
