from app.errors.auth import (
    AccessGateConfigurationError,
    AuthError,
    PresignedUrlError,
    auth_exception_handler,
)
from app.errors.base import (
    BASE_EXCEPTION,
    BaseAppError,
    create_exception_handler,
    create_unhandled_exception_handler,
    error_envelope,
)
from app.errors.cache import (
    CacheDeserializationError,
    CacheExceptionError,
    CacheKeyError,
    CacheSerializationError,
    cache_exception_handler,
)
from app.errors.database import ConflictError, NotFoundError, database_exception_handler
from app.errors.rate_limit import RateLimitError, rate_limit_exception_handler
from app.errors.storage import (
    BlobNotFoundError,
    MetadataStoreError,
    StorageError,
    storage_exception_handler,
)
from app.errors.validation import (
    PayloadTooLargeError,
    ValidationError,
    request_validation_exception_handler,
    validation_exception_handler,
)

__all__ = [
    "AccessGateConfigurationError",
    "AuthError",
    "BASE_EXCEPTION",
    "BaseAppError",
    "BlobNotFoundError",
    "CacheDeserializationError",
    "CacheExceptionError",
    "CacheKeyError",
    "CacheSerializationError",
    "ConflictError",
    "MetadataStoreError",
    "NotFoundError",
    "PayloadTooLargeError",
    "PresignedUrlError",
    "RateLimitError",
    "StorageError",
    "ValidationError",
    "auth_exception_handler",
    "cache_exception_handler",
    "create_exception_handler",
    "create_unhandled_exception_handler",
    "database_exception_handler",
    "error_envelope",
    "rate_limit_exception_handler",
    "request_validation_exception_handler",
    "storage_exception_handler",
    "validation_exception_handler",
]
