"""Factory pattern for creating counter store instances."""

from redis import Redis
from redis.asyncio import Redis as AsyncRedis

from throttle.adapters.store.base import AbstractAsyncCounterStore, AbstractCounterStore
from throttle.adapters.store.in_memory import AsyncInMemoryCounterStore, InMemoryCounterStore
from throttle.adapters.store.redis_store import AsyncRedisCounterStore, RedisCounterStore
from throttle.core.config import StoreSettings, settings
from throttle.core.errors import InvalidConfigurationError

SUPPORTED_BACKENDS = ("memory", "redis")


def _resolve_backend(store_settings: StoreSettings) -> str:
    backend = store_settings.backend.lower()
    if backend not in SUPPORTED_BACKENDS:
        raise InvalidConfigurationError(
            code="store_unknown_backend",
            message=(
                f"Unknown store backend: '{backend}'. "
                f"Supported backends: {', '.join(SUPPORTED_BACKENDS)}"
            ),
            details={"field": "backend", "actual_value": backend},
        )
    if backend == "redis" and not store_settings.redis_url:
        raise InvalidConfigurationError(
            code="store_missing_url",
            message="Redis backend requires STORE_REDIS_URL environment variable",
            details={"field": "redis_url"},
        )
    return backend


def create_counter_store(store_settings: StoreSettings | None = None) -> AbstractCounterStore:
    """Instantiate the synchronous counter store named by settings.

    Args:
        store_settings: Optional store settings; defaults to global settings.

    Returns:
        AbstractCounterStore: Configured store instance.

    Raises:
        InvalidConfigurationError: If backend-specific requirements are not met.
    """
    cfg = store_settings or settings.store

    if _resolve_backend(cfg) == "redis":
        client = Redis.from_url(
            cfg.redis_url,
            socket_timeout=cfg.socket_timeout_seconds,
            socket_connect_timeout=cfg.socket_timeout_seconds,
        )
        return RedisCounterStore(client)

    return InMemoryCounterStore(max_entries=cfg.max_entries)


def create_async_counter_store(
    store_settings: StoreSettings | None = None,
) -> AbstractAsyncCounterStore:
    """Instantiate the asynchronous counter store named by settings."""
    cfg = store_settings or settings.store

    if _resolve_backend(cfg) == "redis":
        client = AsyncRedis.from_url(
            cfg.redis_url,
            socket_timeout=cfg.socket_timeout_seconds,
            socket_connect_timeout=cfg.socket_timeout_seconds,
        )
        return AsyncRedisCounterStore(client)

    return AsyncInMemoryCounterStore(InMemoryCounterStore(max_entries=cfg.max_entries))
