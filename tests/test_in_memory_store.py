"""Unit tests for the in-memory counter store adapter."""

import threading

import pytest

from ratelimiter.adapters.store.in_memory import InMemoryCounterStore


def test_counts_within_window(clock) -> None:
    store = InMemoryCounterStore(clock=clock)

    assert store.increment_window("k", 0, 10) == 1
    assert store.increment_window("k", 0, 10) == 2
    assert store.increment_window("k", 0, 10) == 3


def test_window_ttl_is_set_on_first_increment_only(clock) -> None:
    store = InMemoryCounterStore(clock=clock)

    store.increment_window("k", 0, 10)
    clock.advance(6)
    store.increment_window("k", 0, 10)

    assert store.ttl("k") == pytest.approx(4)


def test_restarts_after_window_expires(clock) -> None:
    store = InMemoryCounterStore(clock=clock)

    store.increment_window("k", 0, 10)
    store.increment_window("k", 0, 10)
    clock.advance(10)

    assert store.ttl("k") is None
    assert store.increment_window("k", 0, 10) == 1


def test_set_expiry_replaces_ttl(clock) -> None:
    store = InMemoryCounterStore(clock=clock)

    store.increment_window("k", 0, 10)
    store.set_expiry("k", 30)
    clock.advance(20)

    assert store.increment_window("k", 0, 10) == 2


def test_set_expiry_on_missing_key_is_noop(clock) -> None:
    store = InMemoryCounterStore(clock=clock)

    store.set_expiry("missing", 30)

    assert store.ttl("missing") is None


def test_threshold_saturates_counter(clock) -> None:
    store = InMemoryCounterStore(clock=clock)

    counts = [store.increment_window("k", 2, 10) for _ in range(4)]

    assert counts == [1, 2, 2, 2]


def test_counters_are_isolated_by_key(clock) -> None:
    store = InMemoryCounterStore(clock=clock)

    store.increment_window("k1", 0, 10)
    store.increment_window("k1", 0, 10)

    assert store.increment_window("k2", 0, 10) == 1


def test_delete_drops_counter(clock) -> None:
    store = InMemoryCounterStore(clock=clock)
    store.increment_window("k", 0, 10)

    store.delete("k")

    assert store.increment_window("k", 0, 10) == 1


def test_sets_keep_insertion_order_without_duplicates() -> None:
    store = InMemoryCounterStore()

    store.set_add("s", "b")
    store.set_add("s", "a")
    store.set_add("s", "b")
    store.set_remove("s", "missing")

    assert store.set_members("s") == ["b", "a"]

    store.set_remove("s", "b")
    assert store.set_members("s") == ["a"]
    assert store.set_members("other") == []


def test_invalid_window_is_rejected() -> None:
    store = InMemoryCounterStore()

    with pytest.raises(ValueError):
        store.increment_window("k", 0, 0)


def test_concurrent_increments_are_not_lost() -> None:
    store = InMemoryCounterStore()

    def _worker() -> None:
        for _ in range(100):
            store.increment_window("k", 0, 60)

    threads = [threading.Thread(target=_worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert store.increment_window("k", 0, 60) == 801
