# app/clients/redis_client.py
"""Redis client module shared by the cache layer and the rate limiter."""

from collections.abc import AsyncGenerator
from logging import getLogger

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from app.configs import RedisCacheConfig, file_logger, pool_kwargs

logger = file_logger(getLogger(__name__))


class RedisClient:
    """Async Redis client wrapper with connection pooling."""

    def __init__(self, config: RedisCacheConfig | None = None) -> None:
        self.config = config or RedisCacheConfig()
        self._pool: ConnectionPool | None = None
        self._redis: Redis | None = None

    def _build_pool(self) -> ConnectionPool:
        kwargs = pool_kwargs(self.config)
        if self.config.url:
            return ConnectionPool.from_url(self.config.url, **kwargs)
        return ConnectionPool(host=self.config.host, port=self.config.port, **kwargs)

    async def connect(self) -> None:
        """Establish Redis connection pool."""
        try:
            self._pool = self._build_pool()
            self._redis = Redis(connection_pool=self._pool)
            if not await self._redis.ping():
                mssg = "Redis ping returned False"
                raise RedisConnectionError(mssg)
            logger.info("Redis connection successful.")
        except (ConnectionError, RedisTimeoutError, RedisError) as e:
            logger.exception("Failed to connect to Redis")
            mssg = f"Cannot connect to Redis at {self.config.host}:{self.config.port}"
            raise RedisConnectionError(mssg) from e

    async def disconnect(self) -> None:
        """Close Redis connection pool."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            logger.info("Redis connection closed.")

    @property
    def client(self) -> Redis:
        """Get Redis client instance."""
        if self._redis is None:
            mssg = "Redis client not initialized. Call connect() first."
            raise RuntimeError(mssg)
        return self._redis

    async def get(self, key: str) -> str | None:
        return await self.client.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        return bool(await self.client.set(key, value, ex=ex))

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return await self.client.delete(*keys)

    async def ping(self) -> bool:
        return bool(await self.client.ping())

    async def scan_iter(self, pattern: str, count: int = 100) -> AsyncGenerator[str]:
        """Yield keys matching the pattern without loading the keyspace into memory."""
        cursor = 0
        while True:
            cursor, keys = await self.client.scan(cursor, match=pattern, count=count)
            for key in keys:
                yield key.decode("utf-8") if isinstance(key, bytes) else key
            if cursor == 0:
                break
