"""Per-identity rate limiter with whitelist/blacklist overrides.

Decision order for :meth:`RateLimiter.check`:

1. Whitelisted identities are always allowed (count 0, no store access).
2. Blacklisted identities are always blocked (count 0, no store access).
3. Otherwise the window counter ``<name>:<identity>`` is incremented in the
   store. Reaching ``block_times`` blocks the identity, either for
   ``block_seconds`` (the counter TTL is replaced) or, when
   ``block_seconds`` is 0, permanently via the blacklist. Reaching
   ``warning_times`` warns. Blocking wins when both thresholds are met.

Store failures propagate as :class:`StoreAppError`; nothing is retried.

The limiter itself is synchronous. Async callers go through
:func:`run_off_loop`, which keeps the event loop free while a store call is
in flight and lets the calling task be cancelled or timed out.
"""

from __future__ import annotations

import asyncio
import contextvars
import functools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, TypeVar

from ratelimiter.adapters.pubsub.base import AbstractPublisher
from ratelimiter.adapters.store.base import AbstractCounterStore
from ratelimiter.core.config import LimiterSettings, parse_csv
from ratelimiter.core.errors import (
    AlreadyExistsError,
    AppError,
    StoreAppError,
    default_block_error,
    default_warning_error,
)
from ratelimiter.core.logging import hash_identity
from ratelimiter.services.access_list import AccessListManager, ListKind
from ratelimiter.services.sync import SyncAction, decode_sync_message

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class LimiterConfig:
    """Immutable limiter configuration.

    Attributes:
        name: Key prefix and sync channel; must be unique per shared store.
        window_seconds: Counting window duration.
        warning_times: Count at which requests are warned (0 disables).
        block_times: Count at which requests are blocked (0 disables).
        block_seconds: Timed block duration; 0 blacklists permanently.
        warning_error: Error attached to warned results.
        block_error: Error attached to blocked results.
        whitelist: Static identities that are always allowed.
        blacklist: Static identities that are always blocked.
    """

    name: str
    window_seconds: float
    warning_times: int = 0
    block_times: int = 0
    block_seconds: float = 0
    warning_error: AppError = field(default_factory=default_warning_error)
    block_error: AppError = field(default_factory=default_block_error)
    whitelist: tuple[str, ...] = ()
    blacklist: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("name must be a non-empty string")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        if self.block_seconds < 0:
            raise ValueError("block_seconds must be >= 0")
        if self.warning_times < 0 or self.block_times < 0:
            raise ValueError("warning_times and block_times must be >= 0")


class Decision(str, Enum):
    ALLOW = "allow"
    WARN = "warn"
    BLOCK = "block"


@dataclass(frozen=True)
class CheckResult:
    """Outcome of a single :meth:`RateLimiter.check` call.

    Attributes:
        count: Requests counted in the current window (0 on override paths).
        decision: Whether the request is allowed, warned, or blocked.
        error: The configured warning/block error, None when allowed.
    """

    count: int
    decision: Decision
    error: AppError | None = None

    @property
    def allowed(self) -> bool:
        return self.decision is not Decision.BLOCK


class RateLimiter:
    """Counting-window limiter backed by a shared counter store."""

    def __init__(
        self,
        config: LimiterConfig,
        store: AbstractCounterStore,
        publisher: AbstractPublisher | None = None,
    ) -> None:
        self.config = config
        self._store = store
        self.access_lists = AccessListManager(
            config.name,
            store,
            publisher,
            whitelist=config.whitelist,
            blacklist=config.blacklist,
        )
        self._sync_handlers: dict[SyncAction, Callable[[str, bool], None]] = {
            SyncAction.ADD_WHITELIST: self.add_whitelist,
            SyncAction.REMOVE_WHITELIST: self.remove_whitelist,
            SyncAction.ADD_BLACKLIST: self.add_blacklist,
            SyncAction.REMOVE_BLACKLIST: self.remove_blacklist,
        }

    @classmethod
    def from_settings(
        cls,
        limiter_settings: LimiterSettings,
        store: AbstractCounterStore,
        publisher: AbstractPublisher | None = None,
        *,
        app_name: str = "",
    ) -> "RateLimiter":
        """Build a limiter from environment settings.

        The limiter name is prefixed with ``app_name`` (``"<app>-<name>"``)
        so several applications can share one store.
        """
        name = f"{app_name}-{limiter_settings.name}" if app_name else limiter_settings.name
        config = LimiterConfig(
            name=name,
            window_seconds=limiter_settings.window_seconds,
            warning_times=limiter_settings.warning_times,
            block_times=limiter_settings.block_times,
            block_seconds=limiter_settings.block_seconds,
            whitelist=tuple(parse_csv(limiter_settings.whitelist)),
            blacklist=tuple(parse_csv(limiter_settings.blacklist)),
        )
        return cls(config, store, publisher)

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def store(self) -> AbstractCounterStore:
        return self._store

    @property
    def sync_channel(self) -> str:
        return self.access_lists.channel

    def counter_key(self, identity: str) -> str:
        return f"{self.config.name}:{identity}"

    def check(self, identity: str) -> CheckResult:
        """Count one request for ``identity`` and decide its fate.

        Args:
            identity: Caller identity (user id, IP, API key...).

        Returns:
            CheckResult with the window count and the decision.

        Raises:
            StoreAppError: The counter store failed.
        """
        if self.access_lists.contains(ListKind.WHITE, identity):
            return CheckResult(count=0, decision=Decision.ALLOW)

        if self.access_lists.contains(ListKind.BLACK, identity):
            return CheckResult(count=0, decision=Decision.BLOCK, error=self.config.block_error)

        key = self.counter_key(identity)
        count = self._store.increment_window(key, 0, self.config.window_seconds)

        if self.config.block_times > 0 and count >= self.config.block_times:
            self._block(identity, key, count)
            return CheckResult(count=count, decision=Decision.BLOCK, error=self.config.block_error)

        if self.config.warning_times > 0 and count >= self.config.warning_times:
            logger.info(
                "rate_limit.warned",
                extra={
                    "limiter": self.name,
                    "identity_hash": hash_identity(identity),
                    "count": count,
                },
            )
            return CheckResult(count=count, decision=Decision.WARN, error=self.config.warning_error)

        return CheckResult(count=count, decision=Decision.ALLOW)

    def _block(self, identity: str, key: str, count: int) -> None:
        permanent = self.config.block_seconds == 0
        logger.warning(
            "rate_limit.blocked",
            extra={
                "limiter": self.name,
                "identity_hash": hash_identity(identity),
                "count": count,
                "permanent": permanent,
                "block_seconds": self.config.block_seconds,
            },
        )
        if not permanent:
            self._store.set_expiry(key, self.config.block_seconds)
            return

        try:
            self.add_blacklist(identity, publish=True)
        except AlreadyExistsError:
            # Another request crossed the threshold first.
            pass

    def check_reset(self, identity: str) -> None:
        """Drop the window counter of ``identity`` so counting starts over."""
        self._store.delete(self.counter_key(identity))

    def add_whitelist(self, identity: str, publish: bool = True) -> None:
        self.access_lists.add(ListKind.WHITE, identity, publish)

    def remove_whitelist(self, identity: str, publish: bool = True) -> None:
        self.access_lists.remove(ListKind.WHITE, identity, publish)

    def add_blacklist(self, identity: str, publish: bool = True) -> None:
        self.access_lists.add(ListKind.BLACK, identity, publish)

    def remove_blacklist(self, identity: str, publish: bool = True) -> None:
        """Unblacklist ``identity`` and reset its counter.

        Without the reset a count left over the block threshold would block
        the identity again on its next request.
        """
        self.access_lists.remove(ListKind.BLACK, identity, publish)
        self.check_reset(identity)

    def whitelist(self) -> list[str]:
        return self.access_lists.members(ListKind.WHITE)

    def blacklist(self) -> list[str]:
        return self.access_lists.members(ListKind.BLACK)

    def is_whitelisted(self, identity: str) -> bool:
        return self.access_lists.contains(ListKind.WHITE, identity)

    def is_blacklisted(self, identity: str) -> bool:
        return self.access_lists.contains(ListKind.BLACK, identity)

    def sub(self, message: str) -> None:
        """Replay a sync message from a peer without re-publishing it.

        Malformed messages and unknown actions are ignored.

        Raises:
            AlreadyExistsError: The replayed add was already cached.
            StoreAppError: The store write for the replayed change failed.
        """
        decoded = decode_sync_message(message)
        if decoded is None:
            logger.debug("sync.ignored", extra={"limiter": self.name, "length": len(message)})
            return

        self._sync_handlers[decoded.action](decoded.identity, False)


async def run_off_loop(
    call: Callable[..., T],
    *args: Any,
    timeout: float | None = None,
) -> T:
    """Run a blocking limiter call in the default executor.

    The call runs in a copy of the current context, so request-scoped log
    fields follow it into the worker thread.

    Cancelling the awaiting task raises ``CancelledError`` in the caller
    right away and the call is never retried. A call that already reached
    the store finishes its current command in the worker thread.

    Args:
        call: Limiter or store operation to run.
        *args: Positional arguments for ``call``.
        timeout: Seconds to wait before giving up; None waits indefinitely.

    Returns:
        Whatever ``call`` returns.

    Raises:
        StoreAppError: ``timeout`` elapsed (code ``store_timeout``).
        asyncio.CancelledError: The awaiting task was cancelled.
    """
    loop = asyncio.get_running_loop()
    context = contextvars.copy_context()
    operation = getattr(call, "__name__", type(call).__name__)

    try:
        return await asyncio.wait_for(
            loop.run_in_executor(None, functools.partial(context.run, call, *args)),
            timeout=timeout,
        )
    except asyncio.TimeoutError as exc:
        logger.warning(
            "rate_limit.store_timeout",
            extra={"operation": operation, "timeout_seconds": timeout},
        )
        raise StoreAppError(
            code="store_timeout",
            message=f"Limiter {operation} did not finish within {timeout}s",
            details={"operation": operation, "timeout_seconds": timeout},
        ) from exc
