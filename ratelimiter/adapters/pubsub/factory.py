"""Factories for the sync publisher and subscriber.

The transport follows the counter store: a Redis store syncs over Redis
pub/sub on the same connection pool, the in-memory store over a
process-wide :class:`InMemoryBroker`.
"""

from ratelimiter.adapters.pubsub.base import AbstractPublisher, AbstractSubscriber, MessageHandler
from ratelimiter.adapters.pubsub.in_memory import InMemoryBroker, InMemorySubscriber
from ratelimiter.adapters.pubsub.redis_pubsub import RedisPublisher, RedisSubscriber
from ratelimiter.adapters.store.base import AbstractCounterStore
from ratelimiter.adapters.store.redis_store import RedisCounterStore
from ratelimiter.core.config import settings

local_broker = InMemoryBroker()


def create_publisher(store: AbstractCounterStore) -> AbstractPublisher | None:
    """Return the publisher matching ``store``, or None when sync is disabled."""
    if not settings.limiter.sync_enabled:
        return None
    if isinstance(store, RedisCounterStore):
        return RedisPublisher(store.client)
    return local_broker


def create_subscriber(
    store: AbstractCounterStore,
    channel: str,
    handler: MessageHandler,
) -> AbstractSubscriber | None:
    """Return an (unstarted) subscriber for ``channel``, or None when sync is disabled."""
    if not settings.limiter.sync_enabled:
        return None
    if isinstance(store, RedisCounterStore):
        return RedisSubscriber(
            store.client,
            channel,
            handler,
            poll_seconds=settings.redis.subscriber_poll_seconds,
        )
    return InMemorySubscriber(local_broker, channel, handler)
