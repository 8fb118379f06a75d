"""Counter store adapters.

The limiter only talks to :class:`AbstractCounterStore`; Redis is the shared
backend and the in-memory store covers single-process use.
"""

from ratelimiter.adapters.store.base import AbstractCounterStore
from ratelimiter.adapters.store.factory import create_counter_store
from ratelimiter.adapters.store.in_memory import InMemoryCounterStore
from ratelimiter.adapters.store.redis_store import RedisCounterStore

__all__ = [
    "AbstractCounterStore",
    "InMemoryCounterStore",
    "RedisCounterStore",
    "create_counter_store",
]
