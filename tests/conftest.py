"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets the environment before settings are imported: the in-memory store
replaces Redis, and the limiter thresholds are small enough to reach in a
handful of requests.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"

os.environ.setdefault("APP_NAME", "svc")
os.environ.setdefault("APP_STORE_BACKEND", "memory")
os.environ.setdefault("APP_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_API_KEYS", "test-api-key-123,test-api-key-456")
os.environ.setdefault("LIMITER_NAME", "api")
os.environ.setdefault("LIMITER_WINDOW_SECONDS", "60")
os.environ.setdefault("LIMITER_WARNING_TIMES", "3")
os.environ.setdefault("LIMITER_BLOCK_TIMES", "5")
os.environ.setdefault("LIMITER_BLOCK_SECONDS", "30")
os.environ.setdefault("LIMITER_WHITELIST", "ip:10.0.0.1")

import pytest  # noqa: E402

from ratelimiter.core.rate_limit import reset_rate_limiter  # noqa: E402


class FakeClock:
    """Deterministic clock used to test expiration logic."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def _fresh_process_limiter():
    """Each test starts without the process-wide limiter or its subscription."""
    reset_rate_limiter()
    yield
    reset_rate_limiter()
