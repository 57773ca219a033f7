"""Tests for tiered fixed-window rate limiting."""

from asyncio import gather
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from starlette.requests import Request

from app.configs import LimiterConfig, TierPolicy
from app.errors import RateLimitError
from app.managers.rate_limiter import (
    MemoryRateLimitStore,
    RateLimiter,
    RedisRateLimitStore,
    Tier,
    WindowState,
    client_identity,
)
from app.utils.helpers import fingerprint


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_request(host: str = "203.0.113.7") -> Request:
    scope = {"type": "http", "method": "GET", "path": "/", "headers": [], "client": (host, 5000)}
    return Request(scope)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock: FakeClock) -> RateLimiter:
    return RateLimiter(MemoryRateLimitStore(clock=clock), LimiterConfig())


class TestPublicReadTier:
    """100 requests per 15 minutes per address."""

    @pytest.mark.asyncio
    async def test_hundredth_request_allowed_hundred_first_rejected(
        self,
        limiter: RateLimiter,
        clock: FakeClock,
    ) -> None:
        """The 101st request inside one window gets 429 with the time left."""
        for _ in range(99):
            await limiter.hit(Tier.PUBLIC_READ, "ip:a")

        clock.now += 60
        last = await limiter.hit(Tier.PUBLIC_READ, "ip:a")
        assert last.remaining == 0
        assert last.limit == 100

        with pytest.raises(RateLimitError) as exc_info:
            await limiter.hit(Tier.PUBLIC_READ, "ip:a")
        assert exc_info.value.retry_after == 900 - 60
        assert exc_info.value.headers()["Retry-After"] == "840"

    @pytest.mark.asyncio
    async def test_window_resets(self, limiter: RateLimiter, clock: FakeClock) -> None:
        """A fresh window starts once the old one has elapsed."""
        for _ in range(100):
            await limiter.hit(Tier.PUBLIC_READ, "ip:a")
        clock.now += 900
        decision = await limiter.hit(Tier.PUBLIC_READ, "ip:a")
        assert decision.remaining == 99

    @pytest.mark.asyncio
    async def test_identities_counted_separately(self, limiter: RateLimiter) -> None:
        """One address exhausting its quota does not affect another."""
        for _ in range(100):
            await limiter.hit(Tier.PUBLIC_READ, "ip:a")
        decision = await limiter.hit(Tier.PUBLIC_READ, "ip:b")
        assert decision.remaining == 99

    @pytest.mark.asyncio
    async def test_tiers_counted_separately(self, limiter: RateLimiter) -> None:
        """Read traffic does not eat into the health quota."""
        for _ in range(100):
            await limiter.hit(Tier.PUBLIC_READ, "ip:a")
        decision = await limiter.hit(Tier.HEALTH, "ip:a")
        assert decision.limit == 1000

    @pytest.mark.asyncio
    async def test_concurrent_burst_is_never_undercounted(self, limiter: RateLimiter) -> None:
        """Exactly 100 of 150 simultaneous requests are admitted."""
        results = await gather(
            *(limiter.hit(Tier.PUBLIC_READ, "ip:burst") for _ in range(150)),
            return_exceptions=True,
        )
        rejected = [r for r in results if isinstance(r, RateLimitError)]
        assert len(rejected) == 50
        assert len(results) - len(rejected) == 100


class TestAdminTiers:
    @pytest.mark.asyncio
    async def test_admin_write_quota(self, limiter: RateLimiter) -> None:
        """50 writes per hour."""
        for _ in range(50):
            await limiter.hit(Tier.ADMIN_WRITE, "apikey:x")
        with pytest.raises(RateLimitError) as exc_info:
            await limiter.hit(Tier.ADMIN_WRITE, "apikey:x")
        assert exc_info.value.limit == 50

    @pytest.mark.asyncio
    async def test_admin_delete_quota(self, limiter: RateLimiter) -> None:
        """20 deletes per hour."""
        for _ in range(20):
            await limiter.hit(Tier.ADMIN_DELETE, "apikey:x")
        with pytest.raises(RateLimitError):
            await limiter.hit(Tier.ADMIN_DELETE, "apikey:x")

    def test_custom_policy(self) -> None:
        """Tiers can be reconfigured."""
        config = LimiterConfig(public_read=TierPolicy(window_seconds=10, max_requests=2))
        assert RateLimiter(config=config).policy(Tier.PUBLIC_READ).max_requests == 2


class TestClientIdentity:
    def test_public_tier_uses_address(self) -> None:
        """Reads are keyed on the source address even when a key is sent."""
        assert client_identity(make_request(), Tier.PUBLIC_READ, "key") == "ip:203.0.113.7"

    def test_admin_tier_uses_key_fingerprint(self) -> None:
        """Writes are keyed on the credential, never its raw value."""
        identity = client_identity(make_request(), Tier.ADMIN_WRITE, "key")
        assert identity == f"apikey:{fingerprint('key')}"
        assert "key" not in identity.removeprefix("apikey:")

    def test_admin_tier_without_key_falls_back_to_address(self) -> None:
        assert client_identity(make_request(), Tier.ADMIN_DELETE, None) == "ip:203.0.113.7"


class TestMemoryStore:
    @pytest.mark.asyncio
    async def test_prunes_expired_windows(self, clock: FakeClock) -> None:
        """Old windows are dropped once the table grows too large."""
        store = MemoryRateLimitStore(clock=clock, max_keys=2)
        await store.hit("a", 10)
        await store.hit("b", 10)
        clock.now += 11
        await store.hit("c", 10)
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_reset(self, clock: FakeClock) -> None:
        store = MemoryRateLimitStore(clock=clock)
        await store.hit("a", 10)
        await store.reset()
        assert len(store) == 0


def redis_with_pipeline(results: list[object]) -> MagicMock:
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=results)
    pipe.__aenter__ = AsyncMock(return_value=pipe)
    pipe.__aexit__ = AsyncMock(return_value=None)
    redis_client = MagicMock()
    redis_client.client.pipeline.return_value = pipe
    return redis_client


class TestRedisStore:
    @pytest.mark.asyncio
    async def test_hit_reads_count_and_ttl(self) -> None:
        """Count and remaining window come from one MULTI block."""
        redis_client = redis_with_pipeline([True, 3, 899_500])
        store = RedisRateLimitStore(redis_client)

        state = await store.hit("ratelimit:public-read:ip:a", 900)

        assert state == WindowState(3, 899.5)
        pipe = redis_client.client.pipeline.return_value
        pipe.set.assert_called_once_with("ratelimit:public-read:ip:a", 0, ex=900, nx=True)
        pipe.incr.assert_called_once_with("ratelimit:public-read:ip:a")

    @pytest.mark.asyncio
    async def test_missing_ttl_defaults_to_window(self) -> None:
        store = RedisRateLimitStore(redis_with_pipeline([None, 1, -1]))
        state = await store.hit("k", 60)
        assert state.reset_after == 60.0

    @pytest.mark.asyncio
    async def test_limiter_falls_back_to_memory_on_redis_failure(self, clock: FakeClock) -> None:
        """A Redis outage degrades to in-process counting instead of failing requests."""
        store = MagicMock()
        store.hit = AsyncMock(side_effect=RedisConnectionError("down"))
        limiter = RateLimiter(store, LimiterConfig(), store_retry_seconds=30, clock=clock)

        first = await limiter.hit(Tier.PUBLIC_READ, "ip:a")
        second = await limiter.hit(Tier.PUBLIC_READ, "ip:a")

        assert first.remaining == 99
        assert second.remaining == 98
        assert limiter.degraded
        # Inside the cooldown the shared store is left alone
        assert store.hit.await_count == 1

    @pytest.mark.asyncio
    async def test_shared_store_is_retried_after_cooldown(self, clock: FakeClock) -> None:
        """One transient failure does not pin the limiter to local counters."""
        store = MagicMock()
        store.hit = AsyncMock(side_effect=[RedisConnectionError("blip"), WindowState(7, 600.0)])
        limiter = RateLimiter(store, LimiterConfig(), store_retry_seconds=30, clock=clock)

        await limiter.hit(Tier.PUBLIC_READ, "ip:a")
        clock.now += 31
        decision = await limiter.hit(Tier.PUBLIC_READ, "ip:a")

        assert store.hit.await_count == 2
        assert decision.remaining == 93
        assert not limiter.degraded

    @pytest.mark.asyncio
    async def test_failed_retry_extends_cooldown(self, clock: FakeClock) -> None:
        store = MagicMock()
        store.hit = AsyncMock(side_effect=RedisConnectionError("down"))
        limiter = RateLimiter(store, LimiterConfig(), store_retry_seconds=30, clock=clock)

        await limiter.hit(Tier.PUBLIC_READ, "ip:a")
        clock.now += 31
        await limiter.hit(Tier.PUBLIC_READ, "ip:a")
        clock.now += 10
        third = await limiter.hit(Tier.PUBLIC_READ, "ip:a")

        assert store.hit.await_count == 2
        assert third.remaining == 97
