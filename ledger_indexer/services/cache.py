"""Read-through cache for the query API.

    Client -> cache -> hit  -> return
    Client -> cache -> miss -> entity store -> populate cache -> return

Two invalidation strategies cover each other:

  1. TTL.  Every entry expires after CACHE_TTL_SECONDS even if an
     invalidation was missed.
  2. Explicit.  The worker hands `invalidate` the (kind, id) keys of every
     entity it committed; the entries built from them are deleted.

Only responses that are read often and change on many events are
cached: course detail and the two stats singletons.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Protocol, runtime_checkable

from redis.exceptions import RedisError

from ledger_indexer.core.metrics import CACHE_OPERATIONS
from ledger_indexer.db.redis import redis_pool

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 60


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None:
        """Fetch a cached value.  Returns None on cache miss."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, *keys: str) -> None: ...

    async def delete_pattern(self, pattern: str) -> None:
        """Delete all keys matching a glob pattern (e.g. 'course:*')."""
        ...


class InMemoryCacheService:
    """In-memory cache for tests and single-process dev; TTL is not enforced."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = value

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self._store.pop(key, None)

    async def delete_pattern(self, pattern: str) -> None:
        prefix = pattern.rstrip("*")
        for key in [k for k in self._store if k.startswith(prefix)]:
            del self._store[key]


class RedisCacheService:
    """Redis-backed cache shared by every API instance and the worker."""

    _PREFIX = "cache:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        return await self._redis.get(f"{self._PREFIX}{key}")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)

    async def delete(self, *keys: str) -> None:
        if keys:
            await self._redis.delete(*(f"{self._PREFIX}{key}" for key in keys))

    async def delete_pattern(self, pattern: str) -> None:
        # SCAN, not KEYS: never block the server on a full keyspace walk.
        cursor = 0
        while True:
            cursor, keys = await self._redis.scan(
                cursor, match=f"{self._PREFIX}{pattern}", count=100
            )
            if keys:
                await self._redis.delete(*keys)
            if cursor == 0:
                break


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


def course_key(course_id: str) -> str:
    return f"course:{course_id}"


def stats_key(name: str) -> str:
    return f"stats:{name}"


def keys_for(touched: Iterable[tuple[str, str]]) -> set[str]:
    """Cache keys built from the given (kind, id) entity keys."""
    keys: set[str] = set()
    for kind, entity_id in touched:
        if kind == "Course":
            keys.add(course_key(entity_id))
        elif kind == "PlatformStats":
            keys.add(stats_key("platform"))
        elif kind == "NetworkStats":
            keys.add(stats_key("network"))
    return keys


async def invalidate(cache: CacheService, touched: Iterable[tuple[str, str]]) -> int:
    keys = keys_for(touched)
    if keys:
        await cache.delete(*sorted(keys))
    return len(keys)


async def read_through(
    cache: CacheService,
    key: str,
    load: Callable[[], Awaitable[str | None]],
    ttl_seconds: int = CACHE_TTL_SECONDS,
) -> str | None:
    """Return the cached value for `key`, or load, store and return it.

    A None from `load` (unknown id) is not cached.  A cache backend
    failure degrades to a plain load.
    """
    try:
        cached = await cache.get(key)
    except RedisError as exc:
        logger.warning("Cache read for %s failed, reading the store: %s", key, exc)
        return await load()
    if cached is not None:
        CACHE_OPERATIONS.labels(operation="hit").inc()
        return cached

    CACHE_OPERATIONS.labels(operation="miss").inc()
    value = await load()
    if value is not None:
        try:
            await cache.set(key, value, ttl_seconds)
        except RedisError as exc:
            logger.warning("Cache write for %s failed: %s", key, exc)
    return value


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    cache_service: CacheService = RedisCacheService(redis_pool)
else:
    cache_service = InMemoryCacheService()
