"""Publish/subscribe adapters used to sync access lists across instances."""

from ratelimiter.adapters.pubsub.base import AbstractPublisher, AbstractSubscriber
from ratelimiter.adapters.pubsub.factory import create_publisher, create_subscriber
from ratelimiter.adapters.pubsub.in_memory import InMemoryBroker, InMemorySubscriber
from ratelimiter.adapters.pubsub.redis_pubsub import RedisPublisher, RedisSubscriber

__all__ = [
    "AbstractPublisher",
    "AbstractSubscriber",
    "InMemoryBroker",
    "InMemorySubscriber",
    "RedisPublisher",
    "RedisSubscriber",
    "create_publisher",
    "create_subscriber",
]
