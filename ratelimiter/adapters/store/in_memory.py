"""In-memory counter store.

Notes:
- Per-process only: limiters in different processes do not share counters
  or access lists. Use the Redis store for multi-instance deployments.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

from ratelimiter.adapters.store.base import AbstractCounterStore


@dataclass
class _CounterState:
    count: int
    expires_at: float


class InMemoryCounterStore(AbstractCounterStore):
    """Counter store keeping window counters and sets in process memory.

    Expired counters are dropped lazily, on the next access to their key.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize the in-memory store.

        Args:
            clock: Time source in seconds, used for counter expiry.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._counters: dict[str, _CounterState] = {}
        self._sets: dict[str, list[str]] = {}

    def _live_counter(self, key: str, now: float) -> _CounterState | None:
        """Return the counter for key, evicting it when expired."""
        state = self._counters.get(key)
        if state is not None and state.expires_at <= now:
            del self._counters[key]
            return None
        return state

    def increment_window(self, key: str, threshold: int, window_seconds: float) -> int:
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")

        now = self._clock()
        with self._lock:
            state = self._live_counter(key, now)
            if state is None:
                state = _CounterState(count=0, expires_at=now + window_seconds)
                self._counters[key] = state
            if threshold > 0 and state.count >= threshold:
                return state.count
            state.count += 1
            return state.count

    def set_expiry(self, key: str, seconds: float) -> None:
        now = self._clock()
        with self._lock:
            state = self._live_counter(key, now)
            if state is not None:
                state.expires_at = now + seconds

    def ttl(self, key: str) -> float | None:
        """Seconds left before ``key`` expires, or None when it does not exist."""
        now = self._clock()
        with self._lock:
            state = self._live_counter(key, now)
            return None if state is None else state.expires_at - now

    def delete(self, key: str) -> None:
        with self._lock:
            self._counters.pop(key, None)
            self._sets.pop(key, None)

    def set_add(self, key: str, member: str) -> None:
        with self._lock:
            members = self._sets.setdefault(key, [])
            if member not in members:
                members.append(member)

    def set_remove(self, key: str, member: str) -> None:
        with self._lock:
            members = self._sets.get(key)
            if members and member in members:
                members.remove(member)

    def set_members(self, key: str) -> list[str]:
        with self._lock:
            return list(self._sets.get(key, ()))
