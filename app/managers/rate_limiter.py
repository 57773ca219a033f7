# app/managers/rate_limiter.py

"""
Tiered fixed-window rate limiting.

Counters live behind ``RateLimitStore`` so a single instance can keep them in
process while a multi-instance deployment shares them through Redis without
changing any call site.
"""

from asyncio import Lock
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger
from time import monotonic
from typing import Protocol

from fastapi import Request
from redis.exceptions import RedisError
from slowapi.util import get_remote_address

from app.clients.redis_client import RedisClient
from app.configs import LimiterConfig, TierPolicy, file_logger
from app.decorators.with_retry import with_retry
from app.errors import RateLimitError
from app.utils.helpers import fingerprint

logger = file_logger(getLogger(__name__))

type Clock = Callable[[], float]


class Tier(StrEnum):
    PUBLIC_READ = "public-read"
    ADMIN_WRITE = "admin-write"
    ADMIN_DELETE = "admin-delete"
    HEALTH = "health"


ADMIN_TIERS = frozenset({Tier.ADMIN_WRITE, Tier.ADMIN_DELETE})


@dataclass(frozen=True, slots=True)
class WindowState:
    """Counter value after a hit and seconds left in the current window."""

    count: int
    reset_after: float


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    tier: Tier
    limit: int
    remaining: int
    reset_after: int

    def headers(self) -> dict[str, str]:
        return {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_after),
        }


class RateLimitStore(Protocol):
    async def hit(self, key: str, window_seconds: int) -> WindowState:
        """Atomically count one request against ``key``'s current window."""
        ...

    async def reset(self) -> None:
        ...


class MemoryRateLimitStore:
    """
    Process-local counters.

    Each hit is a read-modify-write under one lock, so concurrent bursts for
    the same key are never undercounted. Expired windows are pruned once the
    table grows past ``max_keys``.
    """

    def __init__(self, clock: Clock = monotonic, max_keys: int = 100_000) -> None:
        self._clock = clock
        self._max_keys = max_keys
        # key -> (count, window_start, window_seconds)
        self._windows: dict[str, tuple[int, float, int]] = {}
        self._lock = Lock()

    async def hit(self, key: str, window_seconds: int) -> WindowState:
        async with self._lock:
            now = self._clock()
            count, started, _ = self._windows.get(key, (0, now, window_seconds))
            if now - started >= window_seconds:
                count, started = 0, now
            count += 1
            self._windows[key] = (count, started, window_seconds)
            if len(self._windows) > self._max_keys:
                self._prune(now)
            return WindowState(count, window_seconds - (now - started))

    def _prune(self, now: float) -> None:
        expired = [
            key
            for key, (_, started, window) in self._windows.items()
            if now - started >= window
        ]
        for key in expired:
            del self._windows[key]

    async def reset(self) -> None:
        async with self._lock:
            self._windows.clear()

    def __len__(self) -> int:
        return len(self._windows)


class RedisRateLimitStore:
    """
    Counters shared by every instance through Redis.

    The window is opened by ``SET NX EX`` and counted with ``INCR`` inside one
    MULTI block; the key's remaining TTL is the time left in the window.
    """

    def __init__(self, redis_client: RedisClient, key_prefix: str = "ratelimit") -> None:
        self._redis = redis_client
        self._key_prefix = key_prefix

    @with_retry(max_retries=2)
    async def hit(self, key: str, window_seconds: int) -> WindowState:
        async with self._redis.client.pipeline(transaction=True) as pipe:
            pipe.set(key, 0, ex=window_seconds, nx=True)
            pipe.incr(key)
            pipe.pttl(key)
            _, count, ttl_ms = await pipe.execute()
        reset_after = ttl_ms / 1000 if ttl_ms and ttl_ms > 0 else float(window_seconds)
        return WindowState(int(count), reset_after)

    async def reset(self) -> None:
        keys = [key async for key in self._redis.scan_iter(f"{self._key_prefix}:*")]
        await self._redis.delete(*keys)


class RateLimiter:
    """
    Enforces the per-tier quotas in ``LimiterConfig``.

    When the shared store fails, counting continues in a process-local store
    so an outage degrades to per-instance limits instead of failing requests.
    The shared store is tried again once ``store_retry_seconds`` have passed
    and takes over as soon as it answers.
    """

    def __init__(
        self,
        store: RateLimitStore | None = None,
        config: LimiterConfig | None = None,
        enabled: bool = True,
        store_retry_seconds: float = 30.0,
        clock: Clock = monotonic,
    ) -> None:
        self.config = config or LimiterConfig()
        self.store: RateLimitStore = store or MemoryRateLimitStore()
        self.enabled = enabled
        self.store_retry_seconds = store_retry_seconds
        self._clock = clock
        self._fallback: MemoryRateLimitStore | None = None
        self._retry_store_at = 0.0

    @property
    def degraded(self) -> bool:
        return self._fallback is not None

    def policy(self, tier: Tier) -> TierPolicy:
        return getattr(self.config, tier.name.lower())

    def _key(self, tier: Tier, identity: str) -> str:
        return f"{self.config.key_prefix}:{tier}:{identity}"

    async def _count(self, key: str, window_seconds: int) -> WindowState:
        if self._fallback is not None and self._clock() < self._retry_store_at:
            return await self._fallback.hit(key, window_seconds)
        try:
            state = await self.store.hit(key, window_seconds)
        except RedisError as e:
            self._retry_store_at = self._clock() + self.store_retry_seconds
            if self._fallback is None:
                logger.warning(f"Rate limit store unavailable: {e}. Falling back to in-memory counters.")
                self._fallback = MemoryRateLimitStore()
            return await self._fallback.hit(key, window_seconds)
        if self._fallback is not None:
            logger.info("Rate limit store reachable again. Using shared counters.")
            self._fallback = None
        return state

    async def hit(self, tier: Tier, identity: str) -> RateLimitDecision:
        """
        Count one request for ``identity`` in ``tier``.

        Raises:
            RateLimitError: If the request exceeds the tier's quota
        """
        policy = self.policy(tier)
        state = await self._count(self._key(tier, identity), policy.window_seconds)
        if state.count > policy.max_requests:
            logger.info(f"Rate limit exceeded for {identity} on tier {tier}")
            raise RateLimitError(tier, policy.max_requests, state.reset_after)
        return RateLimitDecision(
            tier=tier,
            limit=policy.max_requests,
            remaining=policy.max_requests - state.count,
            reset_after=max(1, round(state.reset_after)),
        )

    async def reset(self) -> None:
        await self.store.reset()
        if self._fallback is not None:
            await self._fallback.reset()


def client_identity(request: Request, tier: Tier, credential: str | None = None) -> str:
    """
    Identity a request is counted under.

    Admin tiers key on a fingerprint of the presented credential so distinct
    keys behind one address are not penalized together; everything else keys
    on the source address.
    """
    if credential and tier in ADMIN_TIERS:
        return f"apikey:{fingerprint(credential)}"
    return f"ip:{get_remote_address(request)}"
