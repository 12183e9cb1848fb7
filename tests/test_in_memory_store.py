"""Unit tests for the in-memory counter store."""

import asyncio
import threading

import pytest

from throttle.adapters.store.in_memory import AsyncInMemoryCounterStore, InMemoryCounterStore
from throttle.core.errors import InvalidConfigurationError, StoreUnavailableError


def test_missing_key_has_no_count_or_ttl(store: InMemoryCounterStore) -> None:
    assert store.get_count("missing") is None
    assert store.ttl("missing") is None


def test_first_increment_creates_counter_with_expiry(store: InMemoryCounterStore) -> None:
    assert store.increment_with_expiry("k", 60) == 1

    assert store.get_count("k") == 1
    assert store.ttl("k") == 60


def test_increment_keeps_original_expiry(store: InMemoryCounterStore, fake_time) -> None:
    store.increment_with_expiry("k", 60)
    fake_time.advance(20)

    assert store.increment_with_expiry("k", 60) == 2
    assert store.ttl("k") == 40


def test_expired_counter_is_absent_and_restarts(store: InMemoryCounterStore, fake_time) -> None:
    store.increment_with_expiry("k", 10)
    store.increment_with_expiry("k", 10)

    fake_time.advance(10)

    assert store.get_count("k") is None
    assert store.increment_with_expiry("k", 10) == 1
    assert store.ttl("k") == 10
    assert store.stats()["evictions"] == 1


def test_delete_removes_counter(store: InMemoryCounterStore) -> None:
    store.increment_with_expiry("k", 60)

    store.delete("k")
    store.delete("never-set")

    assert store.get_count("k") is None


def test_full_store_refuses_new_counters_and_keeps_live_ones(fake_time) -> None:
    store = InMemoryCounterStore(max_entries=2, clock=fake_time.time)
    store.increment_with_expiry("a", 100)
    store.increment_with_expiry("b", 100)

    with pytest.raises(StoreUnavailableError) as exc_info:
        store.increment_with_expiry("c", 100)

    assert exc_info.value.code == "store_capacity_exhausted"
    assert store.get_count("a") == 1
    assert store.get_count("b") == 1
    assert store.get_count("c") is None
    # Existing counters keep counting at capacity
    assert store.increment_with_expiry("b", 100) == 2


def test_expired_counters_free_capacity(fake_time) -> None:
    store = InMemoryCounterStore(max_entries=2, clock=fake_time.time)
    store.increment_with_expiry("a", 10)
    store.increment_with_expiry("b", 100)

    fake_time.advance(10)

    assert store.increment_with_expiry("c", 100) == 1
    assert store.get_count("b") == 1
    assert store.stats()["evictions"] == 1


def test_clear_resets_state(store: InMemoryCounterStore) -> None:
    store.increment_with_expiry("a", 10)
    store.increment_with_expiry("b", 10)

    store.clear()

    stats = store.stats()
    assert stats["entries"] == 0
    assert stats["evictions"] == 0


def test_invalid_capacity_is_rejected() -> None:
    with pytest.raises(InvalidConfigurationError):
        InMemoryCounterStore(max_entries=0)


def test_concurrent_increments_are_not_lost() -> None:
    store = InMemoryCounterStore()
    per_thread = 200
    thread_count = 8

    def _writer() -> None:
        for _ in range(per_thread):
            store.increment_with_expiry("shared", 60)

    threads = [threading.Thread(target=_writer) for _ in range(thread_count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert store.get_count("shared") == per_thread * thread_count


def test_async_facade_delegates_to_wrapped_store(store: InMemoryCounterStore) -> None:
    async_store = AsyncInMemoryCounterStore(store)

    async def _scenario() -> tuple[int, int | None, float | None]:
        await async_store.increment_with_expiry("k", 30)
        count = await async_store.increment_with_expiry("k", 30)
        ttl = await async_store.ttl("k")
        await async_store.delete("k")
        return count, await async_store.get_count("k"), ttl

    count, after_delete, ttl = asyncio.run(_scenario())

    assert count == 2
    assert ttl == 30
    assert after_delete is None
