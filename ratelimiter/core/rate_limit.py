"""Rate limiting wiring for FastAPI.

This module owns the process-wide limiter and exposes it to the HTTP layer.

Design goals:
- Minimal coupling: routes depend on dependency functions only.
- Swap-friendly: the counter store and sync transport are chosen by the
  adapter factories from settings.
- One limiter per process: its local access lists must be the ones the sync
  subscriber updates.

Identity strategy:
- Per API key when the X-API-Key header is present.
- Otherwise per client IP.
"""

from __future__ import annotations

import logging
import threading
from typing import Annotated

from fastapi import Header, HTTPException, Request, Response, status

from ratelimiter.adapters.pubsub.base import AbstractSubscriber
from ratelimiter.adapters.pubsub.factory import create_publisher, create_subscriber
from ratelimiter.adapters.store.factory import create_counter_store
from ratelimiter.core.config import settings
from ratelimiter.core.logging import hash_identity
from ratelimiter.services.limiter import Decision, RateLimiter, run_off_loop

logger = logging.getLogger(__name__)


_limiter: RateLimiter | None = None
_subscriber: AbstractSubscriber | None = None
_lock = threading.Lock()


def get_rate_limiter() -> RateLimiter:
    """Return the process-wide rate limiter, building it on first use.

    Returns:
        RateLimiter: Limiter configured from settings.
    """

    global _limiter

    with _lock:
        if _limiter is None:
            store = create_counter_store()
            _limiter = RateLimiter.from_settings(
                settings.limiter,
                store,
                create_publisher(store),
                app_name=settings.app.name,
            )
            logger.info(
                "rate_limit.limiter_created",
                extra={
                    "limiter": _limiter.name,
                    "store_backend": settings.app.store_backend,
                    "sync_enabled": settings.limiter.sync_enabled,
                },
            )
        return _limiter


def start_sync() -> None:
    """Subscribe the limiter to its sync channel (no-op when disabled)."""

    global _subscriber

    limiter = get_rate_limiter()
    with _lock:
        if _subscriber is not None:
            return
        _subscriber = create_subscriber(
            limiter.store,
            limiter.sync_channel,
            limiter.sub,
        )
        if _subscriber is not None:
            _subscriber.start()


def stop_sync() -> None:
    global _subscriber

    with _lock:
        if _subscriber is not None:
            _subscriber.stop()
            _subscriber = None


def reset_rate_limiter() -> None:
    """Drop the cached limiter (and its subscription); used by tests."""

    global _limiter

    stop_sync()
    with _lock:
        _limiter = None


def _build_rate_limit_identity(request: Request, x_api_key: str | None) -> str:
    """Build the limiter identity for the current request.

    Args:
        request: FastAPI request.
        x_api_key: API key value from the X-API-Key header.

    Returns:
        str: Namespaced identity.
    """

    if x_api_key:
        return f"api_key:{x_api_key}"

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


async def enforce_rate_limit(
    request: Request,
    response: Response,
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency enforcing the limiter on a route.

    Blocked identities get HTTP 403 with the block error message. Warned
    identities proceed; the warning is reported in ``X-RateLimit-Warning``.

    Args:
        request: FastAPI request.
        response: Response whose headers carry the limiter outcome.
        x_api_key: API key from X-API-Key header.

    Raises:
        HTTPException: 403 Forbidden when the identity is blocked.
        StoreAppError: The counter store failed or timed out (handled
            globally as 503).
    """

    if not settings.app.rate_limit_enabled:
        return

    # both calls may block on the store
    limiter = await run_off_loop(get_rate_limiter)
    identity = _build_rate_limit_identity(request, x_api_key)
    key_type = "api_key" if x_api_key else "ip"

    result = await run_off_loop(
        limiter.check,
        identity,
        timeout=settings.limiter.store_timeout_seconds,
    )

    headers: dict[str, str] = {}
    if settings.app.rate_limit_include_headers:
        headers["X-RateLimit-Count"] = str(result.count)

    if result.decision is Decision.BLOCK:
        logger.warning(
            "rate_limit.rejected",
            extra={
                "key_type": key_type,
                "identity_hash": hash_identity(identity),
                "count": result.count,
                "limiter": limiter.name,
            },
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=result.error.message if result.error else "forbidden",
            headers=headers or None,
        )

    if result.decision is Decision.WARN and result.error is not None:
        headers["X-RateLimit-Warning"] = result.error.message

    for name, value in headers.items():
        response.headers[name] = value
