"""Redis-backed counter stores.

Counters live in plain Redis strings so every process sharing the server
sees the same counts. Atomicity comes from Redis itself: the increment and
the expiry of a new window run in one Lua script, so a counter can never be
left without an expiry between two commands.

Algorithm
=========
1. ``INCR`` the counter (Redis creates it at 0 first when missing).
2. If the new count is 1, or the key somehow has no TTL, ``PEXPIRE`` it to
   the window length. Later increments leave the TTL alone.
3. Redis deletes the key when the TTL runs out; the next hit starts over.

Errors
======
Connection failures and timeouts raise ``StoreUnavailableError``, which a
throttle handles per its failure mode. ``ResponseError`` (e.g. WRONGTYPE
when another client stored a non-string at the key) and values that are
not integers raise ``StoreResponseError`` and always propagate.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterator
from contextlib import contextmanager

from redis import Redis
from redis.asyncio import Redis as AsyncRedis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError as RedisResponseError
from redis.exceptions import TimeoutError as RedisTimeoutError

from throttle.adapters.store.base import AbstractAsyncCounterStore, AbstractCounterStore
from throttle.core.errors import StoreResponseError, StoreUnavailableError
from throttle.utils.keys import hash_throttle_key

logger = logging.getLogger(__name__)

INCREMENT_WITH_EXPIRY_SCRIPT = """
local count = redis.call('INCR', KEYS[1])
if count == 1 or redis.call('PTTL', KEYS[1]) == -1 then
    redis.call('PEXPIRE', KEYS[1], ARGV[1])
end
return count
"""

_UNAVAILABLE_ERRORS = (RedisConnectionError, RedisTimeoutError)
_RESPONSE_ERRORS = (RedisResponseError, ValueError)


def _expiry_ms(expiry_seconds: float) -> int:
    return max(1, math.ceil(expiry_seconds * 1000))


def _parse_count(raw: bytes | str | int | None) -> int | None:
    if raw is None:
        return None
    return int(raw)


def _parse_pttl(pttl_ms: int) -> float | None:
    # -2: key missing, -1: key without expiry
    if pttl_ms < 0:
        return None
    return pttl_ms / 1000


@contextmanager
def _translate_errors(operation: str, key: str) -> Iterator[None]:
    try:
        yield
    except _UNAVAILABLE_ERRORS as exc:
        key_hash = hash_throttle_key(key)
        logger.warning(
            "store.redis.unavailable",
            extra={
                "operation": operation,
                "key_hash": key_hash,
                "error_type": type(exc).__name__,
            },
        )
        raise StoreUnavailableError(
            code="store_unavailable",
            message=f"Redis {operation} failed: {exc}",
            details={"backend": "redis", "operation": operation, "key_hash": key_hash},
        ) from exc
    except _RESPONSE_ERRORS as exc:
        key_hash = hash_throttle_key(key)
        logger.error(
            "store.redis.bad_response",
            extra={
                "operation": operation,
                "key_hash": key_hash,
                "error_type": type(exc).__name__,
            },
        )
        raise StoreResponseError(
            code="store_bad_response",
            message=f"Redis {operation} returned an unusable response: {exc}",
            details={"backend": "redis", "operation": operation, "key_hash": key_hash},
        ) from exc


class RedisCounterStore(AbstractCounterStore):
    """Counter store on a synchronous redis-py client."""

    def __init__(self, client: Redis) -> None:
        self._client = client
        self._increment = client.register_script(INCREMENT_WITH_EXPIRY_SCRIPT)

    def get_count(self, key: str) -> int | None:
        with _translate_errors("get", key):
            return _parse_count(self._client.get(key))

    def increment_with_expiry(self, key: str, expiry_seconds: float) -> int:
        with _translate_errors("incr", key):
            return int(self._increment(keys=[key], args=[_expiry_ms(expiry_seconds)]))

    def ttl(self, key: str) -> float | None:
        with _translate_errors("pttl", key):
            return _parse_pttl(self._client.pttl(key))

    def delete(self, key: str) -> None:
        with _translate_errors("delete", key):
            self._client.delete(key)


class AsyncRedisCounterStore(AbstractAsyncCounterStore):
    """Counter store on a redis.asyncio client."""

    def __init__(self, client: AsyncRedis) -> None:
        self._client = client
        self._increment = client.register_script(INCREMENT_WITH_EXPIRY_SCRIPT)

    async def get_count(self, key: str) -> int | None:
        with _translate_errors("get", key):
            return _parse_count(await self._client.get(key))

    async def increment_with_expiry(self, key: str, expiry_seconds: float) -> int:
        with _translate_errors("incr", key):
            return int(await self._increment(keys=[key], args=[_expiry_ms(expiry_seconds)]))

    async def ttl(self, key: str) -> float | None:
        with _translate_errors("pttl", key):
            return _parse_pttl(await self._client.pttl(key))

    async def delete(self, key: str) -> None:
        with _translate_errors("delete", key):
            await self._client.delete(key)
