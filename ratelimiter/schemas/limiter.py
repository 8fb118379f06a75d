"""Pydantic schemas for the limiter admin API."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from ratelimiter.services.access_list import ListKind
from ratelimiter.services.limiter import Decision


class CheckResponse(BaseModel):
    """Outcome of counting one request for an identity."""

    identity: str = Field(..., description="Identity that was checked.")
    count: int = Field(
        ..., description="Requests counted in the current window (0 for whitelisted/blacklisted)."
    )
    decision: Decision = Field(..., description="allow, warn or block.")
    allowed: bool = Field(..., description="False only when the identity is blocked.")
    error_code: str | None = Field(
        default=None, description="Code of the warning/block error, if any."
    )
    error_message: str | None = Field(
        default=None, description="Message of the warning/block error, if any."
    )


class AccessListEntryRequest(BaseModel):
    """Body for adding an identity to an access list."""

    identity: str = Field(..., min_length=1, description="Identity to add.")
    publish: bool = Field(
        default=True,
        description="Broadcast the change to peer instances.",
    )


class AccessListResponse(BaseModel):
    """Access list contents, or the single queried identity."""

    kind: ListKind = Field(..., description="'white' or 'black'.")
    identities: List[str] = Field(
        default_factory=list,
        description=(
            "Full local list, or [identity] / [] when a single identity was queried."
        ),
    )
