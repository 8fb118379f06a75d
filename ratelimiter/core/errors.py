"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    count: int
    list_kind: str
    operation: str
    http_status: int
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""


class BlockedError(AppError):
    """Identity is denied: blacklisted or over the block threshold."""


class WarnedError(AppError):
    """Identity is allowed but has crossed the warning threshold."""


class StoreAppError(AppError):
    """Raised when the counter store fails; never retried internally."""


class AlreadyExistsError(AppError):
    """Raised when an identity is already cached in an access list."""

    @property
    def list_kind(self) -> str | None:
        return (self.details or {}).get("list_kind")


def default_block_error() -> BlockedError:
    return BlockedError(code="rate_limit_blocked", message="forbidden")


def default_warning_error() -> WarnedError:
    return WarnedError(code="rate_limit_warning", message="too many requests")


def already_exists_error(list_kind: str) -> AlreadyExistsError:
    """Build the duplicate-entry error for ``white`` or ``black`` lists."""
    return AlreadyExistsError(
        code=f"{list_kind}list_exists",
        message=f"{list_kind}list entry exists",
        details={"list_kind": list_kind},
    )
