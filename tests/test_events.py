"""Tests for the in-process event broadcaster."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from market22_webhooks.events import EventBroadcaster, broadcaster


@pytest.fixture
def subscription():
    sub_id, queue = broadcaster.subscribe()
    yield sub_id, queue
    broadcaster.unsubscribe(sub_id)


def test_instances_are_independent():
    local = EventBroadcaster()
    sub_id, queue = local.subscribe()
    broadcaster.broadcast({"type": "x"})
    assert queue.empty()
    assert local.subscriber_count == 1
    local.unsubscribe(sub_id)
    assert local.subscriber_count == 0


def test_broadcast_reaches_subscriber(subscription):
    _, queue = subscription
    broadcaster.broadcast({"type": "webhook_received"})
    event = queue.get_nowait()
    assert event["type"] == "webhook_received"
    assert "timestamp" in event


def test_unsubscribe_stops_delivery():
    sub_id, queue = broadcaster.subscribe()
    broadcaster.unsubscribe(sub_id)
    broadcaster.broadcast({"type": "x"})
    assert queue.empty()


def test_unsubscribe_unknown_is_noop():
    broadcaster.unsubscribe("missing")


@patch("market22_webhooks.events._QUEUE_MAXSIZE", 2)
def test_full_queue_drops_oldest():
    sub_id, queue = broadcaster.subscribe()
    try:
        for i in range(3):
            broadcaster.broadcast({"n": i})
        assert queue.qsize() == 2
        assert [queue.get_nowait()["n"], queue.get_nowait()["n"]] == [1, 2]
    finally:
        broadcaster.unsubscribe(sub_id)
