"""Tests for the in-memory cache client."""

import pytest

from app.clients.memory_client import MemoryClient


class Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> Clock:
    return Clock()


class TestMemoryClient:
    @pytest.mark.asyncio
    async def test_set_and_get(self) -> None:
        client = MemoryClient()
        assert await client.set("k", "v")
        assert await client.get("k") == "v"
        assert await client.get("missing") is None

    @pytest.mark.asyncio
    async def test_ttl_expiry(self, clock: Clock) -> None:
        """Entries disappear once their TTL has passed."""
        client = MemoryClient(clock=clock)
        await client.set("k", "v", ex=10)
        clock.now = 9.9
        assert await client.get("k") == "v"
        clock.now = 10
        assert await client.get("k") is None

    @pytest.mark.asyncio
    async def test_set_without_ttl_clears_previous_ttl(self, clock: Clock) -> None:
        client = MemoryClient(clock=clock)
        await client.set("k", "v", ex=1)
        await client.set("k", "v2")
        clock.now = 100
        assert await client.get("k") == "v2"

    @pytest.mark.asyncio
    async def test_lru_eviction(self) -> None:
        """The least recently used key goes first."""
        client = MemoryClient(max_entries=2)
        await client.set("a", "1")
        await client.set("b", "2")
        await client.get("a")
        await client.set("c", "3")
        assert await client.get("b") is None
        assert await client.get("a") == "1"
        assert await client.size() == 2

    @pytest.mark.asyncio
    async def test_scan_and_delete(self) -> None:
        client = MemoryClient()
        await client.set("cache:blogs:list:1", "x")
        await client.set("cache:blogs:content:1", "y")
        await client.set("cache:other", "z")

        keys = [key async for key in client.scan_iter("cache:blogs:*")]
        assert sorted(keys) == ["cache:blogs:content:1", "cache:blogs:list:1"]
        assert await client.delete(*keys, "cache:nope") == 2

    @pytest.mark.asyncio
    async def test_close(self) -> None:
        client = MemoryClient()
        await client.set("k", "v")
        await client.close()
        assert not await client.ping()
        assert await client.size() == 0
