"""Publish/subscribe interfaces for cross-instance access list sync.

Delivery is best-effort: a publisher may fail or drop messages, and a
subscriber hands each payload to its handler at most once.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable

from ratelimiter.core.errors import AlreadyExistsError

logger = logging.getLogger(__name__)

MessageHandler = Callable[[str], None]


class AbstractPublisher(ABC):
    """One-way, fire-and-forget message channel."""

    @abstractmethod
    def publish(self, channel: str, message: str) -> None:
        """Send ``message`` to every subscriber of ``channel``.

        Raises whatever the transport raises; callers decide whether to care.
        """
        raise NotImplementedError


class AbstractSubscriber(ABC):
    """Feeds messages received on one channel into a handler."""

    channel: str

    @abstractmethod
    def start(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def stop(self) -> None:
        raise NotImplementedError


def deliver(handler: MessageHandler, channel: str, message: str) -> None:
    """Run ``handler`` on one inbound message, logging instead of raising.

    A failing message must not stop the subscription, so errors end here.
    Duplicate adds are expected when an instance receives its own broadcast.
    """
    try:
        handler(message)
    except AlreadyExistsError as exc:
        logger.debug(
            "sync.duplicate",
            extra={"channel": channel, "error_code": exc.code},
        )
    except Exception:
        logger.exception("sync.handler_failed", extra={"channel": channel})
