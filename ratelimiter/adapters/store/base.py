"""Counter store interface.

The limiter depends on this abstraction (not the concrete implementation)
so the shared backend (Redis) can be swapped for a per-process store in
single-instance deployments and tests.

Every implementation must raise :class:`~ratelimiter.core.errors.StoreAppError`
for backend failures and must not retry internally.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class AbstractCounterStore(ABC):
    """Atomic window counters plus string sets, keyed by string."""

    @abstractmethod
    def increment_window(self, key: str, threshold: int, window_seconds: float) -> int:
        """Atomically increment the window counter stored at ``key``.

        The key is created with a TTL of ``window_seconds`` on first use;
        later increments within the window leave the TTL untouched.

        Args:
            key: Counter key (``<limiter name>:<identity>``).
            threshold: Saturation point; once the counter holds this value it
                is returned without incrementing. 0 means uncapped. The cap
                may be overshot by increments racing on the same key.
            window_seconds: TTL applied when the key is created.

        Returns:
            The post-increment count.
        """
        raise NotImplementedError

    @abstractmethod
    def set_expiry(self, key: str, seconds: float) -> None:
        """Replace the TTL of ``key``. No-op when the key does not exist."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def set_add(self, key: str, member: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def set_remove(self, key: str, member: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def set_members(self, key: str) -> list[str]:
        """Return all members of the set at ``key`` (empty when missing)."""
        raise NotImplementedError
