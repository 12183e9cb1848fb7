"""Per-key request throttling over pluggable counter stores."""

from throttle.adapters.store.base import AbstractAsyncCounterStore, AbstractCounterStore
from throttle.adapters.store.factory import create_async_counter_store, create_counter_store
from throttle.adapters.store.in_memory import AsyncInMemoryCounterStore, InMemoryCounterStore
from throttle.adapters.store.redis_store import AsyncRedisCounterStore, RedisCounterStore
from throttle.core.errors import (
    InvalidConfigurationError,
    StoreResponseError,
    StoreUnavailableError,
    ThrottleError,
)
from throttle.services.throttle_service import (
    AsyncThrottlesService,
    FailureMode,
    ThrottleStatus,
    ThrottlesService,
)
from throttle.utils.keys import build_throttle_key

__all__ = [
    "AbstractAsyncCounterStore",
    "AbstractCounterStore",
    "AsyncInMemoryCounterStore",
    "AsyncRedisCounterStore",
    "AsyncThrottlesService",
    "FailureMode",
    "InMemoryCounterStore",
    "InvalidConfigurationError",
    "RedisCounterStore",
    "StoreResponseError",
    "StoreUnavailableError",
    "ThrottleError",
    "ThrottleStatus",
    "ThrottlesService",
    "build_throttle_key",
    "create_async_counter_store",
    "create_counter_store",
]
