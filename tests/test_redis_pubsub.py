"""Unit tests for the Redis pub/sub sync transport (mocked client)."""

import threading
import time
from unittest.mock import Mock

import pytest
import redis

from ratelimiter.adapters.pubsub.redis_pubsub import RedisPublisher, RedisSubscriber


def _feed(*messages):
    """get_message side effect: yields messages once, then idles."""
    pending = list(messages)

    def _get_message(timeout: float = 0.0):
        if pending:
            return pending.pop(0)
        time.sleep(0.01)
        return None

    return _get_message


@pytest.fixture
def pubsub() -> Mock:
    return Mock()


@pytest.fixture
def client(pubsub: Mock) -> Mock:
    client = Mock(spec=redis.Redis)
    client.pubsub.return_value = pubsub
    return client


def test_publisher_publishes_on_channel(client: Mock) -> None:
    RedisPublisher(client).publish("svc-api", "addWhiteList-alice")

    client.publish.assert_called_once_with("svc-api", "addWhiteList-alice")


def test_subscriber_delivers_message_payloads(client: Mock, pubsub: Mock) -> None:
    received: list[str] = []
    done = threading.Event()

    def handler(message: str) -> None:
        received.append(message)
        if len(received) == 2:
            done.set()

    pubsub.get_message.side_effect = _feed(
        {"type": "subscribe", "data": 1},
        {"type": "message", "data": b"addWhiteList-alice"},
        {"type": "message", "data": "removeBlackList-bob"},
    )
    subscriber = RedisSubscriber(client, "svc-api", handler, poll_seconds=0.05)

    subscriber.start()
    try:
        assert done.wait(timeout=2)
    finally:
        subscriber.stop()

    client.pubsub.assert_called_once_with(ignore_subscribe_messages=True)
    pubsub.subscribe.assert_called_once_with("svc-api")
    pubsub.close.assert_called_once()
    assert received == ["addWhiteList-alice", "removeBlackList-bob"]
    assert subscriber.running is False


def test_handler_failure_does_not_stop_subscription(client: Mock, pubsub: Mock) -> None:
    received: list[str] = []
    done = threading.Event()

    def handler(message: str) -> None:
        if message == "boom":
            raise RuntimeError("handler failed")
        received.append(message)
        done.set()

    pubsub.get_message.side_effect = _feed(
        {"type": "message", "data": "boom"},
        {"type": "message", "data": "addBlackList-eve"},
    )
    subscriber = RedisSubscriber(client, "svc-api", handler, poll_seconds=0.05)

    subscriber.start()
    try:
        assert done.wait(timeout=2)
    finally:
        subscriber.stop()

    assert received == ["addBlackList-eve"]


def test_poll_errors_are_survived(client: Mock, pubsub: Mock) -> None:
    done = threading.Event()
    calls = {"n": 0}

    def _get_message(timeout: float = 0.0):
        calls["n"] += 1
        if calls["n"] == 1:
            raise redis.ConnectionError("lost connection")
        if calls["n"] == 2:
            return {"type": "message", "data": "addWhiteList-alice"}
        time.sleep(0.01)
        return None

    pubsub.get_message.side_effect = _get_message
    subscriber = RedisSubscriber(client, "svc-api", lambda message: done.set(), poll_seconds=0.01)

    subscriber.start()
    try:
        assert done.wait(timeout=2)
    finally:
        subscriber.stop()


def test_stop_during_slow_handler_leaves_close_to_listener(client: Mock, pubsub: Mock) -> None:
    in_handler = threading.Event()
    release = threading.Event()
    closed = threading.Event()
    reads_after_close: list[object] = []

    def handler(message: str) -> None:
        in_handler.set()
        release.wait(timeout=5)

    def _get_message(timeout: float = 0.0):
        if closed.is_set():
            reads_after_close.append(timeout)
        if not in_handler.is_set():
            return {"type": "message", "data": "addWhiteList-alice"}
        time.sleep(0.01)
        return None

    pubsub.get_message.side_effect = _get_message
    pubsub.close.side_effect = lambda: closed.set()
    subscriber = RedisSubscriber(client, "svc-api", handler, poll_seconds=0.01)

    subscriber.start()
    assert in_handler.wait(timeout=2)

    subscriber.stop()
    assert pubsub.close.call_count == 0
    assert subscriber.running is False

    release.set()
    assert closed.wait(timeout=2)
    pubsub.close.assert_called_once()
    assert reads_after_close == []


def test_restart_after_stop_uses_fresh_pubsub(client: Mock) -> None:
    first, second = Mock(), Mock()
    first.get_message.side_effect = _feed()
    second.get_message.side_effect = _feed()
    client.pubsub.side_effect = [first, second]
    subscriber = RedisSubscriber(client, "svc-api", lambda message: None, poll_seconds=0.01)

    subscriber.start()
    subscriber.stop()
    subscriber.start()
    try:
        assert subscriber.running is True
    finally:
        subscriber.stop()

    first.close.assert_called_once()
    second.close.assert_called_once()
