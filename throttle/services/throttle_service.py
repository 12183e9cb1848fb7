"""Per-key throttle over a pluggable counter store.

A throttle answers "can this subject proceed?" (``can_go``, read-only) and
separately records "this subject made a request" (``hit``, one atomic store
increment). Callers typically check, do their work, and only then commit the
hit, or skip committing when the work failed.

Concurrency contract:
- The throttle holds only immutable configuration and never locks. Instances
  may be shared freely.
- Counts are mutated solely through the store's ``increment_with_expiry``.
- ``can_go`` and ``hit`` are not atomic together. N concurrent callers can
  all pass ``can_go`` and then all ``hit``, overshooting the limit by up to
  N - 1. ``attempt`` is the opt-in alternative: a single increment whose
  result decides admission, so nothing is over-admitted, but rejected
  attempts are counted as well.
- ``hit`` never enforces the limit: a sixth hit against ``limit=5`` leaves
  the counter at 6.

Store failures (``StoreUnavailableError``) are handled per ``FailureMode``:
``raise`` propagates them (default), ``open`` treats them as "allow" and
``closed`` as "deny". In the non-raising modes a failed ``hit`` is logged and
returns None without recording anything. ``get_expire`` and ``remove`` always
propagate. There are no retries.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum

from throttle.adapters.store.base import AbstractAsyncCounterStore, AbstractCounterStore
from throttle.core.config import ThrottleSettings
from throttle.core.errors import InvalidConfigurationError, StoreUnavailableError
from throttle.core.window import WindowDuration, WindowPolicy
from throttle.utils.keys import build_throttle_key, hash_throttle_key

logger = logging.getLogger(__name__)


class FailureMode(str, Enum):
    """What a throttle does when its counter store is unavailable."""

    RAISE = "raise"
    OPEN = "open"
    CLOSED = "closed"

    @classmethod
    def parse(cls, value: "FailureMode | str") -> "FailureMode":
        try:
            return cls(value.lower() if isinstance(value, str) else value)
        except ValueError:
            raise InvalidConfigurationError(
                code="throttle_invalid_failure_mode",
                message=f"Unknown failure mode: '{value}'. Supported modes: raise, open, closed",
                details={"field": "failure_mode", "actual_value": value},
            ) from None


@dataclass(frozen=True)
class ThrottleStatus:
    """Snapshot of a subject's standing in its current window.

    Attributes:
        allowed: Whether the subject may proceed.
        limit: Max admitted hits per window.
        count: Hits recorded in the current window.
        remaining: Hits still admitted in the current window.
        retry_after_seconds: Seconds until the window resets when blocked.
    """

    allowed: bool
    limit: int
    count: int
    remaining: int
    retry_after_seconds: int | None


class _ThrottleBase:
    """Configuration and decision logic shared by sync and async throttles."""

    def __init__(
        self,
        key: str,
        limit: int,
        window: WindowDuration,
        prefix: str,
        *,
        failure_mode: FailureMode | str = FailureMode.RAISE,
    ) -> None:
        """Initialize the throttle.

        Args:
            key: Subject to track (e.g. an IP address).
            limit: Maximum admitted hits per window; 0 admits nothing.
            window: Window duration, as timedelta or seconds.
            prefix: Namespace for counter keys, avoiding collisions between
                throttles that share a store.
            failure_mode: Behaviour when the store is unavailable.

        Raises:
            InvalidConfigurationError: If limit, window or failure_mode are invalid.
        """
        self._prefix = prefix
        self._policy = WindowPolicy.build(limit, window)
        self._failure_mode = FailureMode.parse(failure_mode)
        self._derived_key = build_throttle_key(prefix, key)
        self._key_hash = hash_throttle_key(self._derived_key)

    @classmethod
    def from_settings(cls, key: str, throttle_settings: ThrottleSettings):
        """Build a throttle for key using limits from settings."""
        return cls(
            key,
            throttle_settings.limit,
            throttle_settings.window_seconds,
            throttle_settings.prefix,
            failure_mode=throttle_settings.failure_mode,
        )

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(key_hash={self._key_hash}, limit={self.limit}, "
            f"window_seconds={self.window_seconds}, prefix={self._prefix!r}, "
            f"failure_mode={self._failure_mode.value})"
        )

    @property
    def limit(self) -> int:
        return self._policy.limit

    @property
    def window_seconds(self) -> float:
        return self._policy.window_seconds

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def failure_mode(self) -> FailureMode:
        return self._failure_mode

    def key(self) -> str:
        """Return the store key for this subject."""
        return self._derived_key

    def _decide(self, count: int) -> bool:
        allowed = self._policy.admits(count)
        if not allowed:
            logger.info(
                "throttle.blocked",
                extra={"key_hash": self._key_hash, "count": count, "limit": self.limit},
            )
        return allowed

    def _log_hit(self, count: int) -> None:
        logger.debug(
            "throttle.hit",
            extra={"key_hash": self._key_hash, "count": count, "limit": self.limit},
        )

    def _on_store_error(self, operation: str, exc: StoreUnavailableError) -> bool:
        """Apply the failure mode; returns the admission verdict to use."""
        if self._failure_mode is FailureMode.RAISE:
            raise exc
        allowed = self._failure_mode is FailureMode.OPEN
        logger.warning(
            "throttle.store_error",
            extra={
                "key_hash": self._key_hash,
                "operation": operation,
                "failure_mode": self._failure_mode.value,
                "allowed": allowed,
                "error_code": exc.code,
            },
        )
        return allowed

    def _build_status(self, count: int, *, allowed: bool, ttl: float | None) -> ThrottleStatus:
        retry_after = None
        if not allowed:
            remaining_window = self.window_seconds if ttl is None else ttl
            retry_after = max(0, int(math.ceil(remaining_window)))
        return ThrottleStatus(
            allowed=allowed,
            limit=self.limit,
            count=count,
            remaining=self._policy.remaining(count),
            retry_after_seconds=retry_after,
        )

    def _fallback_status(self, allowed: bool) -> ThrottleStatus:
        # Count is unknown when the store failed; report none used or none left.
        status = self._build_status(0, allowed=allowed, ttl=None)
        if allowed:
            return status
        return ThrottleStatus(
            allowed=False,
            limit=status.limit,
            count=0,
            remaining=0,
            retry_after_seconds=status.retry_after_seconds,
        )


class ThrottlesService(_ThrottleBase):
    """Throttle for one subject over a synchronous counter store.

    Example:
        >>> store = InMemoryCounterStore()
        >>> service = ThrottlesService("127.0.0.1", 5, 60, "api_rate_limit_")
        >>> if service.can_go(store):
        ...     service.hit(store)
    """

    def can_go(self, store: AbstractCounterStore) -> bool:
        """Return True if the current count is below the limit.

        Absent or expired counters count as zero. Never mutates the store.
        """
        try:
            count = store.get_count(self._derived_key) or 0
        except StoreUnavailableError as exc:
            return self._on_store_error("can_go", exc)
        return self._decide(count)

    def hit(self, store: AbstractCounterStore) -> int | None:
        """Record one hit and return the new count.

        The first hit of a window creates the counter with an expiry of one
        window; later hits increment it without touching the expiry.

        Returns:
            The count after this hit, or None if the store failed and the
            failure mode is open/closed.
        """
        try:
            count = store.increment_with_expiry(
                self._derived_key, self._policy.expiry_for_new_counter()
            )
        except StoreUnavailableError as exc:
            self._on_store_error("hit", exc)
            return None
        self._log_hit(count)
        return count

    def attempt(self, store: AbstractCounterStore) -> ThrottleStatus:
        """Atomically record a hit and decide admission from its result.

        Unlike can_go followed by hit, concurrent callers cannot overshoot the
        limit, but blocked attempts are still counted.
        """
        try:
            count = store.increment_with_expiry(
                self._derived_key, self._policy.expiry_for_new_counter()
            )
            self._log_hit(count)
            allowed = self._decide(count - 1)
            ttl = None if allowed else store.ttl(self._derived_key)
        except StoreUnavailableError as exc:
            return self._fallback_status(self._on_store_error("attempt", exc))
        return self._build_status(count, allowed=allowed, ttl=ttl)

    def status(self, store: AbstractCounterStore) -> ThrottleStatus:
        """Read-only snapshot of count, remaining hits and retry-after."""
        try:
            count = store.get_count(self._derived_key) or 0
            allowed = self._decide(count)
            ttl = None if allowed else store.ttl(self._derived_key)
        except StoreUnavailableError as exc:
            return self._fallback_status(self._on_store_error("status", exc))
        return self._build_status(count, allowed=allowed, ttl=ttl)

    def get_expire(self, store: AbstractCounterStore) -> float:
        """Seconds left in the current window, or the full window if none is open."""
        ttl = store.ttl(self._derived_key)
        return self.window_seconds if ttl is None else ttl

    def remove(self, store: AbstractCounterStore) -> None:
        """Clear the counter for this subject, opening a fresh window."""
        store.delete(self._derived_key)
        logger.info("throttle.removed", extra={"key_hash": self._key_hash})


class AsyncThrottlesService(_ThrottleBase):
    """Throttle for one subject over an asynchronous counter store.

    Same operations and contract as ThrottlesService; each suspends only on
    the store call it wraps.
    """

    async def can_go(self, store: AbstractAsyncCounterStore) -> bool:
        try:
            count = await store.get_count(self._derived_key) or 0
        except StoreUnavailableError as exc:
            return self._on_store_error("can_go", exc)
        return self._decide(count)

    async def hit(self, store: AbstractAsyncCounterStore) -> int | None:
        try:
            count = await store.increment_with_expiry(
                self._derived_key, self._policy.expiry_for_new_counter()
            )
        except StoreUnavailableError as exc:
            self._on_store_error("hit", exc)
            return None
        self._log_hit(count)
        return count

    async def attempt(self, store: AbstractAsyncCounterStore) -> ThrottleStatus:
        try:
            count = await store.increment_with_expiry(
                self._derived_key, self._policy.expiry_for_new_counter()
            )
            self._log_hit(count)
            allowed = self._decide(count - 1)
            ttl = None if allowed else await store.ttl(self._derived_key)
        except StoreUnavailableError as exc:
            return self._fallback_status(self._on_store_error("attempt", exc))
        return self._build_status(count, allowed=allowed, ttl=ttl)

    async def status(self, store: AbstractAsyncCounterStore) -> ThrottleStatus:
        try:
            count = await store.get_count(self._derived_key) or 0
            allowed = self._decide(count)
            ttl = None if allowed else await store.ttl(self._derived_key)
        except StoreUnavailableError as exc:
            return self._fallback_status(self._on_store_error("status", exc))
        return self._build_status(count, allowed=allowed, ttl=ttl)

    async def get_expire(self, store: AbstractAsyncCounterStore) -> float:
        ttl = await store.ttl(self._derived_key)
        return self.window_seconds if ttl is None else ttl

    async def remove(self, store: AbstractAsyncCounterStore) -> None:
        await store.delete(self._derived_key)
        logger.info("throttle.removed", extra={"key_hash": self._key_hash})
