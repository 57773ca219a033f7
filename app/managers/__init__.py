from app.managers.cache_manager import CacheManager
from app.managers.rate_limiter import (
    MemoryRateLimitStore,
    RateLimitDecision,
    RateLimiter,
    RedisRateLimitStore,
    Tier,
    client_identity,
)
from app.managers.url_signer import S3UrlSigner, TokenUrlSigner, UrlSigner

__all__ = [
    "CacheManager",
    "MemoryRateLimitStore",
    "RateLimitDecision",
    "RateLimiter",
    "RedisRateLimitStore",
    "S3UrlSigner",
    "Tier",
    "TokenUrlSigner",
    "UrlSigner",
    "client_identity",
]
