# app/main.py

"""BeyondMoksha Blog API - blog metadata in PostgreSQL, content and covers in a blob store."""

from logging import getLogger

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from app.configs import Settings, file_logger, settings
from app.errors import (
    AccessGateConfigurationError,
    AuthError,
    CacheExceptionError,
    ConflictError,
    NotFoundError,
    PresignedUrlError,
    RateLimitError,
    StorageError,
    ValidationError,
    auth_exception_handler,
    cache_exception_handler,
    create_unhandled_exception_handler,
    database_exception_handler,
    rate_limit_exception_handler,
    request_validation_exception_handler,
    storage_exception_handler,
    validation_exception_handler,
)
from app.middleware import (
    LoggingMiddleware,
    SecurityHeadersMiddleware,
    configure_cors,
    create_lifespan,
)
from app.monitoring import configure_logging
from app.routes import blob_router, blog_router, health_router

logger = file_logger(getLogger(__name__))


def create_app(app_settings: Settings = settings) -> FastAPI:
    """
    Assemble the application for ``app_settings``.

    The blog router is served at ``/blogs`` and again under ``API_PREFIX``.
    """
    app = FastAPI(
        title=app_settings.APP_NAME,
        description="Blog metadata, content and cover delivery with tiered rate limits",
        version=app_settings.APP_VERSION,
        lifespan=create_lifespan(app_settings),
        default_response_class=ORJSONResponse,
        swagger_ui_parameters={
            "docExpansion": "none",
            "operationsSorter": "method",
        },
    )

    configure_cors(app, app_settings.CORS_ORIGINS)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    # Only the configured reverse proxies may rewrite the client address
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=app_settings.FORWARDED_ALLOW_IPS)

    app.include_router(health_router)
    app.include_router(blog_router)
    app.include_router(blog_router, prefix=app_settings.API_PREFIX, include_in_schema=False)
    app.include_router(blob_router)

    errors = [
        (ValidationError, validation_exception_handler),
        (RequestValidationError, request_validation_exception_handler),
        (AuthError, auth_exception_handler),
        (PresignedUrlError, auth_exception_handler),
        (AccessGateConfigurationError, auth_exception_handler),
        (RateLimitError, rate_limit_exception_handler),
        (NotFoundError, database_exception_handler),
        (ConflictError, database_exception_handler),
        (StorageError, storage_exception_handler),
        (CacheExceptionError, cache_exception_handler),
        (Exception, create_unhandled_exception_handler(logger)),
    ]
    _ = [app.add_exception_handler(exc_type, handler) for exc_type, handler in errors]

    return app


configure_logging()
app = create_app()
