"""Protocol definitions for cache client implementations."""

from collections.abc import AsyncIterator, Awaitable
from typing import Protocol, runtime_checkable


@runtime_checkable
class CacheClientProtocol(Protocol):
    """
    Protocol for cache client implementations.

    Both RedisClient and MemoryClient conform to this protocol so the cache
    manager can fall back from one to the other without changing call sites.
    """

    def get(self, key: str) -> Awaitable[str | None]:
        """Get a value from the cache."""
        ...

    def set(self, key: str, value: str, ex: int | None = None) -> Awaitable[bool]:
        """Set a value in the cache with optional TTL."""
        ...

    def delete(self, *keys: str) -> Awaitable[int]:
        """Delete one or more keys from the cache."""
        ...

    def scan_iter(self, pattern: str, count: int = 100) -> AsyncIterator[str]:
        """Yield keys matching a glob pattern."""
        ...

    def ping(self) -> Awaitable[bool]:
        """Check if the cache server is reachable."""
        ...
