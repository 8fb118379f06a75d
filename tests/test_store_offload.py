"""Tests for running blocking limiter calls off the event loop.

Covers concurrency of rate-limited requests against a slow store, task
cancellation during an in-flight store call, and store call timeouts.
"""

import asyncio
import threading
import time
from unittest.mock import patch

import httpx
import pytest
from fastapi.testclient import TestClient

from ratelimiter.adapters.store.in_memory import InMemoryCounterStore
from ratelimiter.core.app_factory import create_app
from ratelimiter.core.errors import StoreAppError
from ratelimiter.core.rate_limit import get_rate_limiter
from ratelimiter.services.limiter import LimiterConfig, RateLimiter, run_off_loop


class SlowStore(InMemoryCounterStore):
    """Counter store whose increments take ``delay`` seconds."""

    def __init__(self, delay: float) -> None:
        super().__init__()
        self.delay = delay

    def increment_window(self, key: str, threshold: int, window_seconds: float) -> int:
        time.sleep(self.delay)
        return super().increment_window(key, threshold, window_seconds)


class GatedStore(InMemoryCounterStore):
    """Counter store whose increments wait until ``release`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()
        self.calls = 0

    def increment_window(self, key: str, threshold: int, window_seconds: float) -> int:
        self.calls += 1
        self.entered.set()
        self.release.wait(timeout=5)
        return super().increment_window(key, threshold, window_seconds)


def _limiter(store) -> RateLimiter:
    config = LimiterConfig(name="offload", window_seconds=60, warning_times=3, block_times=5)
    return RateLimiter(config, store)


@pytest.mark.asyncio
async def test_concurrent_pings_do_not_stall_event_loop() -> None:
    delay = 0.3
    ticks: list[float] = []
    stop = asyncio.Event()

    async def heartbeat() -> None:
        while not stop.is_set():
            ticks.append(time.perf_counter())
            await asyncio.sleep(0.02)

    with patch("ratelimiter.core.rate_limit.create_counter_store", return_value=SlowStore(delay)):
        app = create_app()
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            beat = asyncio.create_task(heartbeat())
            started = time.perf_counter()
            responses = await asyncio.gather(*(client.get("/ping") for _ in range(4)))
            elapsed = time.perf_counter() - started
            stop.set()
            await beat

    assert [response.status_code for response in responses] == [200] * 4
    assert elapsed < delay * 3
    gaps = [later - earlier for earlier, later in zip(ticks, ticks[1:])]
    assert max(gaps) < delay / 2


@pytest.mark.asyncio
async def test_cancelled_check_propagates_and_is_not_retried() -> None:
    store = GatedStore()
    limiter = _limiter(store)
    loop = asyncio.get_running_loop()

    task = asyncio.create_task(run_off_loop(limiter.check, "alice", timeout=5))
    try:
        assert await loop.run_in_executor(None, store.entered.wait, 2)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
    finally:
        store.release.set()

    await asyncio.sleep(0.05)
    assert store.calls == 1


@pytest.mark.asyncio
async def test_timed_out_check_raises_store_error_once() -> None:
    store = GatedStore()
    limiter = _limiter(store)

    try:
        with pytest.raises(StoreAppError) as exc_info:
            await run_off_loop(limiter.check, "alice", timeout=0.05)
    finally:
        store.release.set()

    assert exc_info.value.code == "store_timeout"
    assert exc_info.value.details == {"operation": "check", "timeout_seconds": 0.05}
    assert store.calls == 1


@pytest.mark.asyncio
async def test_run_off_loop_returns_call_result() -> None:
    limiter = _limiter(InMemoryCounterStore())

    result = await run_off_loop(limiter.check, "bob", timeout=1)

    assert result.count == 1


@patch("ratelimiter.api.routes.limiter.settings")
def test_check_route_times_out_with_503(mock_settings) -> None:
    mock_settings.limiter.store_timeout_seconds = 0.05
    store = GatedStore()
    app = create_app()
    app.dependency_overrides[get_rate_limiter] = lambda: _limiter(store)

    try:
        response = TestClient(app).post(
            "/v1/limiter/check/alice",
            headers={"X-API-Key": "test-api-key-123"},
        )
    finally:
        store.release.set()

    assert response.status_code == 503
    assert response.json()["error"]["code"] == "store_timeout"
