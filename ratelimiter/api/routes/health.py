from __future__ import annotations

from fastapi import APIRouter, Depends

from ratelimiter.core.rate_limit import enforce_rate_limit

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Health check endpoint.

    Returns a simple status response to verify the API is operational.
    Used by load balancers and monitoring systems to determine service health.

    Returns:
        dict: A dictionary with a single "status" key set to "ok".
    """

    return {"status": "ok"}


@router.get("/ping", dependencies=[Depends(enforce_rate_limit)])
def ping() -> dict:
    """Rate-limited echo endpoint, for exercising the limiter end to end."""

    return {"status": "pong"}
