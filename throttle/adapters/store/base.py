"""Counter store interfaces.

Throttles depend on these abstractions (not a concrete backend) so the
in-memory store and a shared store such as Redis are interchangeable.

Every implementation must make ``increment_with_expiry`` atomic for
concurrent callers sharing a key: throttles never read-then-write a count.
Backend connectivity failures are raised as ``StoreUnavailableError``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class AbstractCounterStore(ABC):
    """Interface for synchronous counter stores."""

    @abstractmethod
    def get_count(self, key: str) -> int | None:
        """Return the current count for key.

        Args:
            key: Derived counter key.

        Returns:
            The count, or None when the entry is absent or expired.

        Raises:
            StoreUnavailableError: If the backend cannot be reached.
        """
        raise NotImplementedError

    @abstractmethod
    def increment_with_expiry(self, key: str, expiry_seconds: float) -> int:
        """Atomically add one hit to key.

        Creates the entry with count 1 and the given expiry when absent;
        otherwise increments it and leaves its expiry untouched.

        Args:
            key: Derived counter key.
            expiry_seconds: Lifetime of a freshly created entry.

        Returns:
            The count after incrementing.

        Raises:
            StoreUnavailableError: If the backend cannot be reached.
        """
        raise NotImplementedError

    @abstractmethod
    def ttl(self, key: str) -> float | None:
        """Return remaining lifetime in seconds, or None when absent or unbounded."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the entry for key if present."""
        raise NotImplementedError


class AbstractAsyncCounterStore(ABC):
    """Interface for counter stores used from coroutines.

    Same contract as AbstractCounterStore; suspension happens only while
    waiting on the backend.
    """

    @abstractmethod
    async def get_count(self, key: str) -> int | None:
        raise NotImplementedError

    @abstractmethod
    async def increment_with_expiry(self, key: str, expiry_seconds: float) -> int:
        raise NotImplementedError

    @abstractmethod
    async def ttl(self, key: str) -> float | None:
        raise NotImplementedError

    @abstractmethod
    async def delete(self, key: str) -> None:
        raise NotImplementedError
