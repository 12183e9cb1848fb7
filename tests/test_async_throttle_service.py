"""Unit tests for the asynchronous throttle service."""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from throttle.adapters.store.base import AbstractAsyncCounterStore
from throttle.adapters.store.in_memory import AsyncInMemoryCounterStore, InMemoryCounterStore
from throttle.core.errors import StoreUnavailableError
from throttle.services.throttle_service import AsyncThrottlesService, FailureMode


@pytest.fixture
def async_store(store: InMemoryCounterStore) -> AsyncInMemoryCounterStore:
    return AsyncInMemoryCounterStore(store)


def _failing_store() -> Mock:
    error = StoreUnavailableError(code="store_unavailable", message="store down")
    store = Mock(spec=AbstractAsyncCounterStore)
    store.get_count = AsyncMock(side_effect=error)
    store.increment_with_expiry = AsyncMock(side_effect=error)
    store.ttl = AsyncMock(side_effect=error)
    store.delete = AsyncMock(side_effect=error)
    return store


class TestAsyncThrottlesService:
    @pytest.mark.asyncio
    async def test_hits_accumulate_until_limit(self, async_store: AsyncInMemoryCounterStore) -> None:
        service = AsyncThrottlesService("127.0.0.1", 3, 60, "api_")

        for expected in (1, 2, 3):
            assert await service.can_go(async_store) is True
            assert await service.hit(async_store) == expected

        assert await service.can_go(async_store) is False
        assert await async_store.get_count("api_127.0.0.1") == 3

    @pytest.mark.asyncio
    async def test_window_expiry_resets(self, async_store: AsyncInMemoryCounterStore, fake_time) -> None:
        service = AsyncThrottlesService("127.0.0.1", 1, 5, "api_")
        await service.hit(async_store)
        assert await service.can_go(async_store) is False
        assert await service.get_expire(async_store) == 5.0

        fake_time.advance(5)

        assert await service.can_go(async_store) is True
        assert await service.get_expire(async_store) == 5.0

    @pytest.mark.asyncio
    async def test_status_attempt_and_remove(self, async_store: AsyncInMemoryCounterStore) -> None:
        service = AsyncThrottlesService("127.0.0.1", 1, 60, "api_")

        first = await service.attempt(async_store)
        second = await service.attempt(async_store)
        assert (first.allowed, second.allowed) == (True, False)

        status = await service.status(async_store)
        assert status.count == 2
        assert status.retry_after_seconds == 60

        await service.remove(async_store)
        assert await service.can_go(async_store) is True

    @pytest.mark.asyncio
    async def test_concurrent_hits_are_all_counted(self, async_store: AsyncInMemoryCounterStore) -> None:
        service = AsyncThrottlesService("127.0.0.1", 100, 60, "api_")

        counts = await asyncio.gather(*(service.hit(async_store) for _ in range(20)))

        assert sorted(counts) == list(range(1, 21))

    @pytest.mark.asyncio
    async def test_raise_mode_propagates(self) -> None:
        service = AsyncThrottlesService("127.0.0.1", 3, 60, "api_")

        with pytest.raises(StoreUnavailableError):
            await service.can_go(_failing_store())

    @pytest.mark.asyncio
    async def test_fail_open_and_closed(self) -> None:
        store = _failing_store()
        fail_open = AsyncThrottlesService("127.0.0.1", 3, 60, "api_", failure_mode=FailureMode.OPEN)
        fail_closed = AsyncThrottlesService("127.0.0.1", 3, 60, "api_", failure_mode="closed")

        assert await fail_open.can_go(store) is True
        assert await fail_open.hit(store) is None
        assert await fail_closed.can_go(store) is False
        assert (await fail_closed.attempt(store)).allowed is False
