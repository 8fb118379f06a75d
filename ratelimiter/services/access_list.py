"""Whitelist/blacklist management with a persisted and a local copy.

Each limiter owns two access lists. The authoritative copy of each lives in
the counter store as a set (``<name>-white`` / ``<name>-black``); a local,
lock-guarded copy answers membership checks on the request path without a
store round trip. Peers learn about changes through sync messages published
on the channel named after the limiter.

Consistency model:
- Writes go to the store first, then to the local copy.
- The local copy may lag behind changes made by other instances until their
  sync message arrives.
- Duplicate adds are reported after the store write (see
  :meth:`AccessListManager.add`), so the error is advisory.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Iterable

from ratelimiter.adapters.pubsub.base import AbstractPublisher
from ratelimiter.adapters.store.base import AbstractCounterStore
from ratelimiter.core.errors import StoreAppError, already_exists_error
from ratelimiter.core.logging import hash_identity
from ratelimiter.services.sync import SyncAction, encode_sync_message

logger = logging.getLogger(__name__)


class ListKind(str, Enum):
    WHITE = "white"
    BLACK = "black"


_ADD_ACTIONS = {
    ListKind.WHITE: SyncAction.ADD_WHITELIST,
    ListKind.BLACK: SyncAction.ADD_BLACKLIST,
}
_REMOVE_ACTIONS = {
    ListKind.WHITE: SyncAction.REMOVE_WHITELIST,
    ListKind.BLACK: SyncAction.REMOVE_BLACKLIST,
}


class LocalAccessList:
    """Insertion-ordered identity list safe for concurrent readers and writers."""

    def __init__(self, identities: Iterable[str] = ()) -> None:
        self._lock = threading.RLock()
        self._items: list[str] = []
        self.extend(identities)

    def __contains__(self, identity: str) -> bool:
        with self._lock:
            return identity in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def add(self, identity: str) -> bool:
        """Append ``identity``; False when it was already present."""
        with self._lock:
            if identity in self._items:
                return False
            self._items.append(identity)
            return True

    def extend(self, identities: Iterable[str]) -> None:
        with self._lock:
            for identity in identities:
                if identity not in self._items:
                    self._items.append(identity)

    def remove(self, identity: str) -> bool:
        """Drop ``identity``; False when it was not present."""
        with self._lock:
            if identity not in self._items:
                return False
            self._items.remove(identity)
            return True

    def snapshot(self) -> list[str]:
        with self._lock:
            return list(self._items)


class AccessListManager:
    """Owns the whitelist and blacklist of one limiter."""

    def __init__(
        self,
        name: str,
        store: AbstractCounterStore,
        publisher: AbstractPublisher | None = None,
        *,
        whitelist: Iterable[str] = (),
        blacklist: Iterable[str] = (),
    ) -> None:
        """Create both lists and seed them.

        The local copies start from the static lists and are completed with
        whatever the store already holds. A store failure while seeding is
        logged and treated as an empty persisted set.

        Args:
            name: Limiter name; prefixes the set keys and names the sync channel.
            store: Counter store holding the persisted sets.
            publisher: Optional sync publisher; None disables broadcasting.
            whitelist: Static identities that are always allowed.
            blacklist: Static identities that are always blocked.
        """
        self.name = name
        self._store = store
        self._publisher = publisher
        self._keys = {kind: f"{name}-{kind.value}" for kind in ListKind}
        self._lists = {
            ListKind.WHITE: LocalAccessList(whitelist),
            ListKind.BLACK: LocalAccessList(blacklist),
        }
        for kind in ListKind:
            self._seed_from_store(kind)

    @property
    def channel(self) -> str:
        return self.name

    def key_for(self, kind: ListKind) -> str:
        return self._keys[kind]

    def _seed_from_store(self, kind: ListKind) -> None:
        try:
            persisted = self._store.set_members(self._keys[kind])
        except StoreAppError as exc:
            logger.warning(
                "access_list.seed_failed",
                extra={"limiter": self.name, "list_kind": kind.value, "error_code": exc.code},
            )
            return
        self._lists[kind].extend(persisted)

    def add(self, kind: ListKind, identity: str, publish: bool = True) -> None:
        """Persist ``identity`` into the list, then cache and broadcast it.

        The store write happens before the duplicate check, so a duplicate
        still refreshes the persisted set.

        Raises:
            StoreAppError: The store write failed; nothing else happened.
            AlreadyExistsError: ``identity`` was already cached locally.
        """
        self._store.set_add(self._keys[kind], identity)

        if not self._lists[kind].add(identity):
            raise already_exists_error(kind.value)

        logger.info(
            "access_list.added",
            extra={
                "limiter": self.name,
                "list_kind": kind.value,
                "identity_hash": hash_identity(identity),
                "publish": publish,
            },
        )
        if publish:
            self._publish(_ADD_ACTIONS[kind], identity)

    def remove(self, kind: ListKind, identity: str, publish: bool = True) -> None:
        """Remove ``identity`` from the store and the local copy (idempotent).

        Raises:
            StoreAppError: The store write failed; the local copy is untouched.
        """
        self._store.set_remove(self._keys[kind], identity)
        removed = self._lists[kind].remove(identity)

        logger.info(
            "access_list.removed",
            extra={
                "limiter": self.name,
                "list_kind": kind.value,
                "identity_hash": hash_identity(identity),
                "was_cached": removed,
                "publish": publish,
            },
        )
        if publish:
            self._publish(_REMOVE_ACTIONS[kind], identity)

    def contains(self, kind: ListKind, identity: str) -> bool:
        return identity in self._lists[kind]

    def members(self, kind: ListKind) -> list[str]:
        return self._lists[kind].snapshot()

    def _publish(self, action: SyncAction, identity: str) -> None:
        if self._publisher is None:
            return
        try:
            self._publisher.publish(self.channel, encode_sync_message(action, identity))
        except Exception as exc:
            # Best effort: the mutation already succeeded in the store.
            logger.warning(
                "sync.publish_failed",
                extra={
                    "limiter": self.name,
                    "action": action.value,
                    "error_type": type(exc).__name__,
                },
            )
