"""Factory for creating the configured counter store."""

from ratelimiter.adapters.store.base import AbstractCounterStore
from ratelimiter.adapters.store.in_memory import InMemoryCounterStore
from ratelimiter.adapters.store.redis_store import RedisCounterStore
from ratelimiter.core.config import settings
from ratelimiter.core.errors import ValidationAppError


def create_counter_store() -> AbstractCounterStore:
    """Instantiate the counter store selected by ``APP_STORE_BACKEND``.

    Returns:
        AbstractCounterStore: Redis-backed (shared) or in-memory store.

    Raises:
        ValidationAppError: If the backend name is unknown.
    """
    backend = settings.app.store_backend.lower()

    if backend == "redis":
        return RedisCounterStore.from_url(
            settings.redis.url,
            socket_timeout=settings.redis.socket_timeout_seconds,
            socket_connect_timeout=settings.redis.socket_connect_timeout_seconds,
        )

    if backend == "memory":
        return InMemoryCounterStore()

    raise ValidationAppError(
        code="store_unknown_backend",
        message=f"Unknown store backend: '{backend}'. Supported backends: redis, memory",
    )
