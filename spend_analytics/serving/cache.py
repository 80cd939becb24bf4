"""
Query Cache Module

Caching and retry layer for store reads:
- Explicit QueryCache object, constructed once per process and passed to
  the repository (no module-level state)
- In-memory backend (default) or Redis backend for multi-worker deployments
- TTL checked on every read
- safe_request: cache lookup, bounded exponential-backoff retries, fallback
"""

import asyncio
import json
import math
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import structlog
from redis.asyncio import Redis

from spend_analytics.config.settings import Settings
from spend_analytics.errors import FetchExhausted

logger = structlog.get_logger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60

# Distinguishes "no fallback supplied" from falsy fallbacks such as [] or 0
MISSING: Any = object()


@dataclass
class QueryResponse:
    """Outcome of one store call: data on success, error on failure."""
    data: Any = None
    error: Any = None


@dataclass
class CacheEntry:
    """Cached payload with the wall-clock time it was stored"""
    data: Any
    timestamp: float

    def is_fresh(self, ttl: float, now: float) -> bool:
        return now - self.timestamp < ttl


class MemoryCacheBackend:
    """
    Process-local cache.

    Entries only expire by TTL; purge_expired() drops stale ones. The map is
    guarded by a lock so the backend is safe under threaded servers too.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    async def get(self, key: str, ttl: float) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._entries.get(key)
        if entry is None or not entry.is_fresh(ttl, self.now()):
            return None
        return entry

    async def set(self, key: str, data: Any, ttl: float) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(data=data, timestamp=self.now())

    async def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    async def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        return count

    def purge_expired(self, ttl: float) -> int:
        """Drop every entry older than ttl; returns how many were removed."""
        now = self.now()
        with self._lock:
            stale = [k for k, e in self._entries.items() if not e.is_fresh(ttl, now)]
            for key in stale:
                del self._entries[key]
        return len(stale)

    def __len__(self) -> int:
        return len(self._entries)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class RedisCacheBackend:
    """
    Redis-backed cache shared between workers.

    Values are stored as JSON, so cached data comes back JSON-decoded
    (dates as ISO strings). Redis expiry is set to the write TTL and the
    stored timestamp is still checked against the read TTL.
    """

    def __init__(self, client: Redis, namespace: str = "spend", clock: Callable[[], float] = time.time):
        self.client = client
        self.namespace = namespace
        self._clock = clock

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def now(self) -> float:
        return self._clock()

    async def get(self, key: str, ttl: float) -> Optional[CacheEntry]:
        value = await self.client.get(self._key(key))
        if value is None:
            return None
        try:
            payload = json.loads(value)
        except json.JSONDecodeError:
            logger.warning("Discarding undecodable cache entry", key=key)
            return None
        entry = CacheEntry(data=payload["data"], timestamp=payload["timestamp"])
        if not entry.is_fresh(ttl, self.now()):
            return None
        return entry

    async def set(self, key: str, data: Any, ttl: float) -> None:
        try:
            serialized = json.dumps({"data": data, "timestamp": self.now()}, default=str)
        except (TypeError, ValueError) as e:
            logger.warning("Failed to serialize value for cache", key=key, error=str(e))
            return
        await self.client.setex(self._key(key), max(1, math.ceil(ttl)), serialized)

    async def delete(self, key: str) -> bool:
        return await self.client.delete(self._key(key)) > 0

    async def clear(self) -> int:
        keys = [k async for k in self.client.scan_iter(match=f"{self.namespace}:*")]
        if not keys:
            return 0
        return await self.client.delete(*keys)

    async def ping(self) -> bool:
        return bool(await self.client.ping())

    async def close(self) -> None:
        await self.client.aclose()


class QueryCache:
    """
    Cache of store query results keyed by query signature.

    Example:
        cache = QueryCache(MemoryCacheBackend(), default_ttl=300)
        locations = await safe_request(cache, "all-locations", fetch, fallback_data=[])
    """

    def __init__(self, backend=None, default_ttl: float = DEFAULT_TTL_SECONDS):
        self.backend = backend if backend is not None else MemoryCacheBackend()
        self.default_ttl = default_ttl

    async def get(self, key: str, ttl: Optional[float] = None) -> Optional[CacheEntry]:
        return await self.backend.get(key, self.default_ttl if ttl is None else ttl)

    async def set(self, key: str, data: Any, ttl: Optional[float] = None) -> None:
        await self.backend.set(key, data, self.default_ttl if ttl is None else ttl)

    async def invalidate(self, key: Optional[str] = None) -> int:
        """Drop one key, or every key when none is given."""
        if key is not None:
            return int(await self.backend.delete(key))
        return await self.backend.clear()

    async def ping(self) -> bool:
        return await self.backend.ping()

    async def close(self) -> None:
        await self.backend.close()


def create_query_cache(settings: Settings) -> QueryCache:
    """Build the process-wide cache from configuration."""
    if settings.cache.backend == "redis":
        client = Redis.from_url(
            settings.redis.url,
            max_connections=settings.redis.max_connections,
            socket_timeout=settings.redis.socket_timeout,
            decode_responses=True,
        )
        backend = RedisCacheBackend(client, namespace=settings.cache.namespace)
    else:
        backend = MemoryCacheBackend()

    logger.info("Query cache created", backend=settings.cache.backend, ttl=settings.cache.ttl_seconds)
    return QueryCache(backend, default_ttl=settings.cache.ttl_seconds)


async def safe_request(
    cache: QueryCache,
    key: str,
    fetch: Callable[[], Awaitable[QueryResponse]],
    *,
    max_retries: int = 3,
    retry_delay: float = 1.0,
    cache_ttl: Optional[float] = None,
    fallback_data: Any = MISSING,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Any:
    """
    Fetch through the cache with retries.

    Args:
        cache: Shared query cache
        key: Cache key for this query
        fetch: Zero-argument coroutine function returning a QueryResponse
        max_retries: Total attempts
        retry_delay: Base backoff in seconds; attempt k waits retry_delay * 2**(k-2)
        cache_ttl: Freshness window, defaults to the cache's TTL
        fallback_data: Returned when every attempt fails (None counts as absent)

    Returns:
        Cached, fetched or fallback data

    Raises:
        FetchExhausted: All attempts failed and no fallback was supplied
    """
    cached = await cache.get(key, cache_ttl)
    if cached is not None:
        logger.debug("Using cached data", key=key)
        return cached.data

    last_error: Any = None

    for attempt in range(1, max_retries + 1):
        if attempt > 1:
            backoff = retry_delay * 2 ** (attempt - 2)
            logger.info("Retrying query", key=key, attempt=attempt, max_retries=max_retries, delay=backoff)
            await sleep(backoff)

        try:
            response = await fetch()
        except Exception as e:
            logger.error("Query raised", key=key, attempt=attempt, error=str(e), error_type=type(e).__name__)
            last_error = e
            continue

        if response.error is not None:
            logger.error("Query returned an error", key=key, attempt=attempt, error=str(response.error))
            last_error = response.error
            continue

        if response.data is None:
            logger.warning("Query returned no data", key=key, attempt=attempt)
            continue

        await cache.set(key, response.data, cache_ttl)
        return response.data

    logger.error("All query attempts failed", key=key, attempts=max_retries)

    if fallback_data is not MISSING and fallback_data is not None:
        return fallback_data

    exhausted = FetchExhausted(key, max_retries, last_error)
    if isinstance(last_error, BaseException):
        raise exhausted from last_error
    raise exhausted
