"""Redis-backed counter store shared by every limiter instance.

Window counters are plain integer keys with a millisecond TTL; access lists
are Redis sets. The increment and the TTL of a fresh counter are sent in one
MULTI/EXEC pipeline, so a counter never exists without its expiry.

Example:
    from ratelimiter.adapters.store.redis_store import RedisCounterStore

    store = RedisCounterStore.from_url("redis://localhost:6379/0")
    store.increment_window("api-login:alice", 0, 60)  # -> 1
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

import redis

from ratelimiter.adapters.store.base import AbstractCounterStore
from ratelimiter.core.errors import StoreAppError

logger = logging.getLogger(__name__)


def _to_millis(seconds: float) -> int:
    return max(1, int(round(seconds * 1000)))


class RedisCounterStore(AbstractCounterStore):
    """Counter store on top of a synchronous redis-py client.

    Command timeouts are those of the client (``socket_timeout``); failures
    surface as :class:`StoreAppError` and are never retried here. Expiry
    options on ``PEXPIRE`` need Redis 7 or newer.
    """

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        socket_timeout: float = 2.0,
        socket_connect_timeout: float = 2.0,
    ) -> "RedisCounterStore":
        client = redis.Redis.from_url(
            url,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_connect_timeout,
            decode_responses=True,
        )
        return cls(client)

    @property
    def client(self) -> redis.Redis:
        return self._client

    @contextmanager
    def _translate_errors(self, operation: str, key: str) -> Iterator[None]:
        try:
            yield
        except redis.RedisError as exc:
            logger.warning(
                "store.command_failed",
                extra={
                    "operation": operation,
                    "key_prefix": key.split(":", 1)[0],
                    "error_type": type(exc).__name__,
                },
            )
            raise StoreAppError(
                code="store_unavailable",
                message=f"Counter store {operation} failed: {exc}",
                details={"operation": operation},
            ) from exc

    def increment_window(self, key: str, threshold: int, window_seconds: float) -> int:
        with self._translate_errors("increment_window", key):
            if threshold > 0:
                current = int(self._client.get(key) or 0)
                if current >= threshold:
                    return current

            pipeline = self._client.pipeline(transaction=True)
            pipeline.incr(key)
            pipeline.pexpire(key, _to_millis(window_seconds), nx=True)
            count, _ = pipeline.execute()
        return int(count)

    def set_expiry(self, key: str, seconds: float) -> None:
        with self._translate_errors("set_expiry", key):
            self._client.pexpire(key, _to_millis(seconds))

    def delete(self, key: str) -> None:
        with self._translate_errors("delete", key):
            self._client.delete(key)

    def set_add(self, key: str, member: str) -> None:
        with self._translate_errors("set_add", key):
            self._client.sadd(key, member)

    def set_remove(self, key: str, member: str) -> None:
        with self._translate_errors("set_remove", key):
            self._client.srem(key, member)

    def set_members(self, key: str) -> list[str]:
        with self._translate_errors("set_members", key):
            members = self._client.smembers(key)
        return sorted(
            member.decode() if isinstance(member, bytes) else member
            for member in members
        )
