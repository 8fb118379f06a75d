"""Admin endpoints for the rate limiter.

All routes require the X-API-Key header. Access list changes made here are
persisted, cached locally and (by default) broadcast to peer instances.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from ratelimiter.core.auth import verify_api_key
from ratelimiter.core.config import settings
from ratelimiter.core.rate_limit import get_rate_limiter
from ratelimiter.schemas.limiter import (
    AccessListEntryRequest,
    AccessListResponse,
    CheckResponse,
)
from ratelimiter.services.access_list import ListKind
from ratelimiter.services.limiter import RateLimiter, run_off_loop

router = APIRouter(
    prefix="/limiter",
    tags=["Limiter"],
    dependencies=[Depends(verify_api_key)],
)


async def _store_call(call, *args):
    return await run_off_loop(call, *args, timeout=settings.limiter.store_timeout_seconds)


@router.post("/check/{identity}", response_model=CheckResponse)
async def check_identity(
    identity: str,
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> CheckResponse:
    """Count one request for ``identity`` and report the decision.

    Unlike ``enforce_rate_limit`` this never rejects the HTTP call itself;
    the decision is part of the response body.
    """
    result = await _store_call(limiter.check, identity)
    return CheckResponse(
        identity=identity,
        count=result.count,
        decision=result.decision,
        allowed=result.allowed,
        error_code=result.error.code if result.error else None,
        error_message=result.error.message if result.error else None,
    )


@router.delete("/counters/{identity}", status_code=status.HTTP_204_NO_CONTENT)
async def reset_counter(
    identity: str,
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> Response:
    await _store_call(limiter.check_reset, identity)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/lists/{kind}", response_model=AccessListResponse)
def get_access_list(
    kind: ListKind,
    identity: str | None = Query(default=None, description="Only report this identity."),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> AccessListResponse:
    """Return the local copy of an access list.

    With ``identity`` the result is ``[identity]`` when it is listed and an
    empty list otherwise; a missing identity is not an error.
    """
    if identity is None:
        return AccessListResponse(kind=kind, identities=limiter.access_lists.members(kind))

    listed = limiter.access_lists.contains(kind, identity)
    return AccessListResponse(kind=kind, identities=[identity] if listed else [])


@router.post(
    "/lists/{kind}",
    response_model=AccessListResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_to_access_list(
    kind: ListKind,
    entry: AccessListEntryRequest,
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> AccessListResponse:
    """Add an identity; 409 when it is already listed on this instance."""
    if kind is ListKind.WHITE:
        await _store_call(limiter.add_whitelist, entry.identity, entry.publish)
    else:
        await _store_call(limiter.add_blacklist, entry.identity, entry.publish)
    return AccessListResponse(kind=kind, identities=[entry.identity])


@router.delete("/lists/{kind}/{identity}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_from_access_list(
    kind: ListKind,
    identity: str,
    publish: bool = Query(default=True, description="Broadcast the change to peers."),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> Response:
    """Remove an identity (idempotent). Unblacklisting also resets its counter."""
    if kind is ListKind.WHITE:
        await _store_call(limiter.remove_whitelist, identity, publish)
    else:
        await _store_call(limiter.remove_blacklist, identity, publish)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
