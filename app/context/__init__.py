# app/context/__init__.py
"""
Long-lived service context.

Everything that holds a connection or shared state is built once at
startup, kept on ``app.state.context`` and handed to route dependencies;
nothing is reached through module globals.
"""

from dataclasses import dataclass, field
from logging import getLogger
from time import monotonic

from sqlalchemy.ext.asyncio import AsyncEngine

from app.auth import AccessGate
from app.clients.redis_client import RedisClient
from app.configs import CacheConfig, LimiterConfig, RedisCacheConfig, Settings, file_logger
from app.db import SessionMaker, close_db, create_engine, create_session_maker, init_db
from app.managers.cache_manager import CacheManager
from app.managers.rate_limiter import (
    MemoryRateLimitStore,
    RateLimiter,
    RateLimitStore,
    RedisRateLimitStore,
)
from app.managers.url_signer import S3UrlSigner, TokenUrlSigner, UrlSigner
from app.services.blog import BlogService
from app.services.storage import BlobStore, S3BlobStore, build_blob_store

logger = file_logger(getLogger(__name__))


@dataclass
class ServiceContext:
    settings: Settings
    engine: AsyncEngine
    sessions: SessionMaker
    blobs: BlobStore
    signer: UrlSigner
    cache: CacheManager
    rate_limiter: RateLimiter
    gate: AccessGate
    blogs: BlogService
    redis: RedisClient | None = None
    started_at: float = field(default_factory=monotonic)

    @property
    def uptime(self) -> float:
        return monotonic() - self.started_at

    async def close(self) -> None:
        """Drain background work, then release every connection."""
        await self.blogs.drain()
        await self.cache.shutdown()
        if isinstance(self.blobs, S3BlobStore):
            await self.blobs.close()
        await close_db(self.engine)
        logger.info("Service context closed")


def _redis_config(settings: Settings) -> RedisCacheConfig:
    return RedisCacheConfig(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        db=settings.REDIS_DB,
        password=settings.REDIS_PASSWORD,
        url=settings.REDIS_URL,
    )


def _rate_limit_store(settings: Settings, cache: CacheManager, redis: RedisClient | None) -> RateLimitStore:
    if settings.RATE_LIMIT_BACKEND == "redis":
        if redis is not None and cache.is_redis_available:
            return RedisRateLimitStore(redis, LimiterConfig().key_prefix)
        logger.warning(
            "Redis rate limit backend requested but Redis is unavailable; using in-memory counters"
        )
    return MemoryRateLimitStore()


async def build_service_context(settings: Settings, *, create_schema: bool = False) -> ServiceContext:
    """
    Connect every collaborator described by ``settings``.

    Args:
        settings: Application settings
        create_schema: Create missing tables directly (development and tests;
            production schemas are managed by Alembic)
    """
    engine = create_engine(settings)
    if create_schema:
        await init_db(engine)
    sessions = create_session_maker(engine)

    blobs = build_blob_store(settings)
    signer: UrlSigner
    if isinstance(blobs, S3BlobStore):
        await blobs.connect()
        signer = S3UrlSigner(blobs)
    else:
        signer = TokenUrlSigner(settings.PRESIGN_SECRET.get_secret_value(), settings.PUBLIC_BASE_URL)

    redis = RedisClient(_redis_config(settings)) if settings.REDIS_ENABLED else None
    cache = CacheManager(redis_client=redis, config=CacheConfig(default_ttl=settings.CACHE_TTL))
    await cache.initialize()

    rate_limiter = RateLimiter(
        _rate_limit_store(settings, cache, redis),
        LimiterConfig(),
        enabled=settings.RATE_LIMIT_ENABLED,
    )
    blogs = BlogService(
        sessions,
        blobs,
        signer,
        cache,
        metadata_timeout=settings.METADATA_TIMEOUT,
        url_ttl=settings.PRESIGNED_URL_TTL,
        cache_ttl=settings.CACHE_TTL,
    )

    logger.info(
        f"Service context ready: storage={settings.STORAGE_PROVIDER}, cache={cache.backend}, "
        f"rate_limit={type(rate_limiter.store).__name__}",
    )
    return ServiceContext(
        settings=settings,
        engine=engine,
        sessions=sessions,
        blobs=blobs,
        signer=signer,
        cache=cache,
        rate_limiter=rate_limiter,
        gate=AccessGate(settings.ADMIN_API_KEY),
        blogs=blogs,
        redis=redis,
    )


__all__ = ["ServiceContext", "build_service_context"]
