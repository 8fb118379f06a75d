"""Redis pub/sub transport for access list sync messages.

The subscriber runs a daemon thread polling a redis-py ``PubSub`` object;
every ``message`` payload on the channel is passed to the handler.
"""

from __future__ import annotations

import logging
import threading

import redis

from ratelimiter.adapters.pubsub.base import (
    AbstractPublisher,
    AbstractSubscriber,
    MessageHandler,
    deliver,
)

logger = logging.getLogger(__name__)


class RedisPublisher(AbstractPublisher):
    """Publishes with ``PUBLISH``; Redis drops messages nobody listens to."""

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    def publish(self, channel: str, message: str) -> None:
        receivers = self._client.publish(channel, message)
        logger.debug("sync.published", extra={"channel": channel, "receivers": receivers})


class RedisSubscriber(AbstractSubscriber):
    """Background listener for one Redis channel."""

    def __init__(
        self,
        client: redis.Redis,
        channel: str,
        handler: MessageHandler,
        *,
        poll_seconds: float = 1.0,
    ) -> None:
        self._client = client
        self.channel = channel
        self._handler = handler
        self._poll_seconds = poll_seconds
        self._stop_event = threading.Event()
        self._pubsub: redis.client.PubSub | None = None
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return

        # a thread left behind by a timed-out stop keeps its own event and pubsub
        self._stop_event = threading.Event()
        self._pubsub = self._client.pubsub(ignore_subscribe_messages=True)
        self._pubsub.subscribe(self.channel)
        self._thread = threading.Thread(
            target=self._run,
            args=(self._pubsub, self._stop_event),
            name=f"ratelimiter-sync-{self.channel}",
            daemon=True,
        )
        self._thread.start()
        logger.info("sync.subscribed", extra={"channel": self.channel})

    def stop(self) -> None:
        """Stop listening; the pubsub is closed by the thread that reads it.

        When the thread is still inside a slow handler after the join
        timeout, it is left to finish and close the pubsub on its own.
        """
        self._stop_event.set()
        thread, self._thread = self._thread, None
        self._pubsub = None

        if thread is not None:
            thread.join(timeout=self._poll_seconds * 2)
            if thread.is_alive():
                logger.warning("sync.stop_timeout", extra={"channel": self.channel})
                return
        logger.info("sync.unsubscribed", extra={"channel": self.channel})

    def poll_once(self) -> bool:
        """Wait up to one poll interval for a message and dispatch it.

        Returns:
            True when a message was handed to the handler.
        """
        if self._pubsub is None:
            return False
        return self._poll(self._pubsub)

    def _poll(self, pubsub: redis.client.PubSub) -> bool:
        message = pubsub.get_message(timeout=self._poll_seconds)
        if not message or message.get("type") != "message":
            return False

        data = message["data"]
        if isinstance(data, bytes):
            data = data.decode("utf-8", errors="replace")
        deliver(self._handler, self.channel, data)
        return True

    def _run(self, pubsub: redis.client.PubSub, stop_event: threading.Event) -> None:
        try:
            while not stop_event.is_set():
                try:
                    self._poll(pubsub)
                except redis.RedisError as exc:
                    logger.warning(
                        "sync.poll_failed",
                        extra={"channel": self.channel, "error_type": type(exc).__name__},
                    )
                    # back off; redis-py re-subscribes on the next successful read
                    stop_event.wait(self._poll_seconds)
        finally:
            pubsub.close()
