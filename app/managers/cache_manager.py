# app/managers/cache_manager.py
"""Cache manager for list/item results with automatic in-memory fallback."""

from asyncio import Lock as AsyncLock
from collections import OrderedDict
from collections.abc import Callable, Coroutine
from logging import DEBUG, getLogger
from typing import Any

from redis.exceptions import RedisError

from app.clients.memory_client import MemoryClient
from app.clients.protocols import CacheClientProtocol
from app.clients.redis_client import RedisClient
from app.configs import CacheConfig, file_logger
from app.errors import BASE_EXCEPTION, CacheExceptionError, CacheKeyError
from app.utils.cache_serializer import deserialize, serialize

logger = file_logger(getLogger(__name__))

CacheCallback = Callable[[], Coroutine[Any, Any, Any]]

CACHE_ERRORS = (RedisError, CacheExceptionError) + BASE_EXCEPTION


class CacheManager:
    """
    Namespaced key/value cache in front of the metadata and blob stores.

    Features:
        - Redis when enabled and reachable, in-memory otherwise
        - Runtime fallback to memory when Redis drops mid-flight
        - Request coalescing in ``get_or_set`` (Thundering Herd protection)
    """

    # Maximum number of locks to keep in memory (LRU eviction)
    MAX_LOCKS: int = 10_000

    def __init__(
        self,
        redis_client: RedisClient | None = None,
        memory_client: MemoryClient | None = None,
        config: CacheConfig | None = None,
    ) -> None:
        self.redis_client = redis_client
        self.memory_client = memory_client or MemoryClient()
        self.cache_config = config or CacheConfig()
        self._client: CacheClientProtocol = self.memory_client
        self.is_redis_available = False
        self._locks: OrderedDict[str, AsyncLock] = OrderedDict()

    async def initialize(self) -> None:
        """
        Initialize cache manager by connecting to Redis.

        If no Redis client is configured or the connection fails, it falls
        back to the in-memory cache.
        """
        if self.redis_client is None:
            logger.info("Redis disabled. Using in-memory cache.")
            return
        try:
            await self.redis_client.connect()
        except RedisError as e:
            logger.warning(f"Redis connection failed: {e}. Falling back to in-memory cache.")
            return
        self._client = self.redis_client
        self.is_redis_available = True
        logger.info("Cache manager initialized with Redis.")

    async def shutdown(self) -> None:
        """Close the Redis connection and drop in-memory entries."""
        if self.redis_client is not None:
            await self.redis_client.disconnect()
        await self.memory_client.close()
        logger.info("Cache manager shutdown successfully.")

    @property
    def backend(self) -> str:
        return "redis" if self.is_redis_available else "in-memory"

    def _build_key(self, key: str, namespace: str | None = None) -> str:
        """Build full cache key with prefix and namespace."""
        prefix = self.cache_config.key_prefix
        return f"{prefix}:{namespace}:{key}" if namespace else f"{prefix}:{key}"

    def _fallback_to_memory(self) -> None:
        if self.is_redis_available:
            logger.warning("Redis connection lost. Falling back to in-memory cache.")
            self._client = self.memory_client
            self.is_redis_available = False

    async def get(self, key: str, namespace: str | None = None) -> Any | None:
        """Get value from cache."""
        full_key = self._build_key(key, namespace)
        try:
            if logger.isEnabledFor(DEBUG):
                logger.debug("Getting from cache: %s", full_key)
            cached_value = await self._client.get(full_key)
            return None if cached_value is None else deserialize(cached_value)
        except RedisError as e:
            self._fallback_to_memory()
            mssg = f"Cache get failed for key {key}"
            raise CacheKeyError(mssg) from e

    async def set(
        self,
        key: str,
        value: object,
        ttl: int | None = None,
        namespace: str | None = None,
    ) -> bool:
        """Set value in cache."""
        full_key = self._build_key(key, namespace)
        ex = min(ttl if ttl is not None else self.cache_config.default_ttl, self.cache_config.max_ttl)
        try:
            return await self._client.set(full_key, serialize(value), ex=ex)
        except RedisError as e:
            self._fallback_to_memory()
            mssg = f"Cache set failed for key {key}"
            raise CacheKeyError(mssg) from e

    async def delete(self, *keys: str, namespace: str | None = None) -> int:
        """Delete keys from cache."""
        try:
            return await self._client.delete(*(self._build_key(key, namespace) for key in keys))
        except RedisError as e:
            self._fallback_to_memory()
            mssg = "Cache delete failed"
            raise CacheKeyError(mssg) from e

    def _get_or_create_lock(self, key: str) -> AsyncLock:
        if key in self._locks:
            self._locks.move_to_end(key)
            return self._locks[key]

        while len(self._locks) >= self.MAX_LOCKS:
            self._locks.popitem(last=False)

        lock = AsyncLock()
        self._locks[key] = lock
        return lock

    async def get_or_set(
        self,
        key: str,
        callback: CacheCallback,
        ttl: int | None = None,
        namespace: str | None = None,
    ) -> Any:
        """
        Get from cache or set using callback if not found.

        Cache failures never fail the read: the callback result is returned
        and the error is logged.
        """
        try:
            cached = await self.get(key, namespace)
            if cached is not None:
                return cached
        except CACHE_ERRORS as e:
            logger.warning("Failed to retrieve from cache: %s", e)

        async with self._get_or_create_lock(self._build_key(key, namespace)):
            try:
                cached = await self.get(key, namespace)
                if cached is not None:
                    return cached
            except CACHE_ERRORS as e:
                logger.warning("Failed to retrieve from cache: %s", e)

            value = await callback()
            try:
                await self.set(key, value, ttl, namespace)
            except CACHE_ERRORS as e:
                logger.warning("Failed to store in cache: %s", e)
            return value

    async def clear(self, namespace: str | None = None) -> int:
        """
        Clear all cache entries, optionally for a namespace.

        Uses batched deletion to ensure memory safety.
        """
        prefix = self.cache_config.key_prefix
        pattern = f"{prefix}:{namespace}:*" if namespace else f"{prefix}:*"
        deleted_total = 0
        keys_batch: list[str] = []
        try:
            async for key in self._client.scan_iter(pattern):
                keys_batch.append(key)
                if len(keys_batch) >= 1000:
                    deleted_total += await self._client.delete(*keys_batch)
                    keys_batch = []
            if keys_batch:
                deleted_total += await self._client.delete(*keys_batch)
        except RedisError as e:
            self._fallback_to_memory()
            mssg = "Cache clear failed"
            raise CacheKeyError(mssg) from e

        if deleted_total and logger.isEnabledFor(DEBUG):
            logger.debug("Cleared %d keys for pattern '%s'.", deleted_total, pattern)
        return deleted_total

    async def ping(self) -> bool:
        """Ping the cache server."""
        try:
            return await self._client.ping()
        except CACHE_ERRORS:
            logger.exception("Cache ping failed")
            return False

    async def health_check(self) -> dict[str, Any]:
        return {
            "backend": self.backend,
            "status": "healthy" if await self.ping() else "unhealthy",
        }
