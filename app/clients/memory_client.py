"""In-memory cache client for fallback when Redis is not available."""

from asyncio import Lock
from collections import OrderedDict
from collections.abc import AsyncGenerator, Callable
from fnmatch import fnmatch
from logging import getLogger
from time import monotonic

from app.configs import file_logger

logger = file_logger(getLogger(__name__))


class MemoryClient:
    """
    An asynchronous in-memory cache client that mimics RedisClient.

    Expired entries are dropped lazily on access; once ``max_entries`` is
    reached the least recently used entry is evicted.
    """

    DEFAULT_MAX_ENTRIES: int = 10_000

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        self._cache: OrderedDict[str, str] = OrderedDict()
        self._expires: dict[str, float] = {}
        self._max_entries = max_entries
        self._clock = clock
        self._lock = Lock()
        self.is_connected = True

    def _expired(self, key: str) -> bool:
        deadline = self._expires.get(key)
        return deadline is not None and self._clock() >= deadline

    def _drop(self, key: str) -> bool:
        self._expires.pop(key, None)
        return self._cache.pop(key, None) is not None

    async def get(self, key: str) -> str | None:
        """Get a value from the cache."""
        async with self._lock:
            if self._expired(key):
                self._drop(key)
                return None
            value = self._cache.get(key)
            if value is not None:
                self._cache.move_to_end(key)
            return value

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        """Set a value with optional TTL, evicting the LRU entry when full."""
        async with self._lock:
            while len(self._cache) >= self._max_entries and key not in self._cache:
                oldest, _ = self._cache.popitem(last=False)
                self._expires.pop(oldest, None)

            self._cache[key] = value
            self._cache.move_to_end(key)
            if ex:
                self._expires[key] = self._clock() + ex
            else:
                # Redis SET removes TTL unless KEEPTTL is used
                self._expires.pop(key, None)
            return True

    async def delete(self, *keys: str) -> int:
        """Delete one or more keys from the cache."""
        async with self._lock:
            return sum(self._drop(key) for key in keys)

    async def scan_iter(
        self,
        pattern: str,
        count: int = 100,  # noqa: ARG002 - kept for API compatibility with RedisClient
    ) -> AsyncGenerator[str]:
        """Yield live keys matching a glob pattern."""
        async with self._lock:
            keys = [key for key in self._cache if not self._expired(key)]

        for key in keys:
            if fnmatch(key, pattern):
                yield key

    async def ping(self) -> bool:
        return self.is_connected

    async def size(self) -> int:
        async with self._lock:
            return len(self._cache)

    async def close(self) -> None:
        async with self._lock:
            self._cache.clear()
            self._expires.clear()
            self.is_connected = False
