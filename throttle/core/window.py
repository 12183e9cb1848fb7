"""Fixed-window policy.

A window starts at the first recorded hit for a key and lasts exactly
``window`` seconds. Hits before it elapses count against the same counter;
once it elapses the store drops the entry and the next hit opens a new window.
There is no rolling window.

Boundary: ``limit = N`` admits the first N hits (``count < limit``), so a
limit of zero never admits anything.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import timedelta

from throttle.core.errors import InvalidConfigurationError

WindowDuration = timedelta | float | int


def to_seconds(window: WindowDuration) -> float:
    """Normalize a window given as timedelta or seconds to float seconds."""
    if isinstance(window, timedelta):
        return window.total_seconds()
    return float(window)


@dataclass(frozen=True)
class WindowPolicy:
    """Validated limit/window pair.

    Attributes:
        limit: Maximum admitted hits per window (>= 0).
        window_seconds: Window duration in seconds (> 0).
    """

    limit: int
    window_seconds: float

    def __post_init__(self) -> None:
        if isinstance(self.limit, bool) or not isinstance(self.limit, int):
            raise InvalidConfigurationError(
                code="throttle_invalid_limit",
                message="limit must be an integer",
                details={"field": "limit", "actual_value": self.limit},
            )
        if self.limit < 0:
            raise InvalidConfigurationError(
                code="throttle_invalid_limit",
                message="limit must be >= 0",
                details={"field": "limit", "actual_value": self.limit},
            )
        if not (math.isfinite(self.window_seconds) and self.window_seconds > 0):
            raise InvalidConfigurationError(
                code="throttle_invalid_window",
                message="window must be a positive, finite duration",
                details={"field": "window", "actual_value": self.window_seconds},
            )

    @classmethod
    def build(cls, limit: int, window: WindowDuration) -> "WindowPolicy":
        """Create a policy from a timedelta or a number of seconds.

        Raises:
            InvalidConfigurationError: If limit or window are invalid.
        """
        if not isinstance(window, (timedelta, int, float)) or isinstance(window, bool):
            raise InvalidConfigurationError(
                code="throttle_invalid_window",
                message="window must be a timedelta or a number of seconds",
                details={"field": "window", "actual_value": window},
            )
        return cls(limit=limit, window_seconds=to_seconds(window))

    def admits(self, count: int) -> bool:
        """Return True when a subject with ``count`` hits may proceed."""
        return count < self.limit

    def remaining(self, count: int) -> int:
        return max(0, self.limit - count)

    def expiry_for_new_counter(self) -> float:
        """Expiry, in seconds, for a counter created by the first hit of a window."""
        return self.window_seconds
