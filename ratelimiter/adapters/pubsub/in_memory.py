"""In-process publish/subscribe hub.

Messages are delivered synchronously, inside ``publish``, to every handler
subscribed to the channel at that moment. Useful for running several
limiters in one process and for tests.
"""

from __future__ import annotations

import threading

from ratelimiter.adapters.pubsub.base import (
    AbstractPublisher,
    AbstractSubscriber,
    MessageHandler,
    deliver,
)


class InMemoryBroker(AbstractPublisher):
    """Thread-safe channel registry that doubles as a publisher."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handlers: dict[str, list[MessageHandler]] = {}
        self.published: list[tuple[str, str]] = []

    def subscribe(self, channel: str, handler: MessageHandler) -> None:
        with self._lock:
            self._handlers.setdefault(channel, []).append(handler)

    def unsubscribe(self, channel: str, handler: MessageHandler) -> None:
        with self._lock:
            handlers = self._handlers.get(channel, [])
            if handler in handlers:
                handlers.remove(handler)

    def publish(self, channel: str, message: str) -> None:
        with self._lock:
            self.published.append((channel, message))
            handlers = list(self._handlers.get(channel, ()))

        for handler in handlers:
            deliver(handler, channel, message)


class InMemorySubscriber(AbstractSubscriber):
    """Subscription to one channel of an :class:`InMemoryBroker`."""

    def __init__(self, broker: InMemoryBroker, channel: str, handler: MessageHandler) -> None:
        self._broker = broker
        self.channel = channel
        self._handler = handler
        self._active = False

    def start(self) -> None:
        if not self._active:
            self._broker.subscribe(self.channel, self._handler)
            self._active = True

    def stop(self) -> None:
        if self._active:
            self._broker.unsubscribe(self.channel, self._handler)
            self._active = False
