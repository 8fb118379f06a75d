"""Application factory for the rate limiter service.

Centralizes app construction (metadata, middleware, handlers, routers and
the sync subscription lifecycle) so tests can build isolated apps.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from ratelimiter.api.routes import health_router, limiter_router
from ratelimiter.core.config import settings
from ratelimiter.core.exception_handlers import setup_exception_handlers
from ratelimiter.core.logging import configure_logging
from ratelimiter.core.middleware import request_id_middleware
from ratelimiter.core.openapi import apply_openapi_customizations
from ratelimiter.core.rate_limit import start_sync, stop_sync
from ratelimiter.services.limiter import run_off_loop

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Subscribe to peer access list changes for the lifetime of the app."""
    await run_off_loop(start_sync)
    logger.info("app.started", extra={"app_env": settings.app_env})
    try:
        yield
    finally:
        await run_off_loop(stop_sync)
        logger.info("app.stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Rate Limiter API",
        description=(
            "Per-identity rate limiter with warning/block thresholds, "
            "whitelist/blacklist overrides shared through Redis, and "
            "cross-instance sync of override changes."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)

    app.include_router(limiter_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
