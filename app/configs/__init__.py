from app.configs.settings import (
    CacheConfig,
    LimiterConfig,
    RedisCacheConfig,
    Settings,
    TierPolicy,
    file_logger,
    pool_kwargs,
    settings,
)

__all__ = [
    "CacheConfig",
    "LimiterConfig",
    "RedisCacheConfig",
    "Settings",
    "TierPolicy",
    "file_logger",
    "pool_kwargs",
    "settings",
]
