"""Throttle exception types.

This module defines the errors raised by throttles and counter stores,
enabling consistent error handling and logging by callers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability.

    Fields are optional; only the ones relevant to an error are set.
    """

    code: str
    message: str
    hint: str
    field: str
    actual_value: Any
    backend: str
    operation: str
    key_hash: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for throttle/store failures.

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


class ThrottleError(AppError):
    """Base class for everything raised by this package."""


class InvalidConfigurationError(ThrottleError):
    """Raised when a throttle or store is built from invalid settings."""


class StoreUnavailableError(ThrottleError):
    """Raised when the backing counter store cannot be reached or timed out."""


class StoreResponseError(ThrottleError):
    """Raised when the store answered but rejected the command or held bad data.

    Unlike StoreUnavailableError this is not subject to a throttle's failure
    mode: it signals a misconfigured or corrupted key, not an outage.
    """
