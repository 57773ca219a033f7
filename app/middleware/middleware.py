# app/middleware/middleware.py
"""
Middleware components for the blog API.

This module contains middleware for request logging with request-ID
correlation, security headers and CORS, plus the lifespan handler that
builds and tears down the service context.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from app.configs import Settings, settings
from app.context import build_service_context
from app.monitoring import bind_request_id, clear_context, get_logger, redact_secrets
from app.utils.helpers import get_summary, host

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def create_lifespan(app_settings: Settings = settings):  # noqa: ANN201
    """
    Build the lifespan handler for ``app_settings``.

    Startup builds the service context and stores it on ``app.state.context``;
    shutdown drains pending view counts and closes every connection.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        logger.info(f"Starting {app.title}...", environment=app_settings.ENVIRONMENT)
        try:
            context = await build_service_context(
                app_settings,
                create_schema=not app_settings.is_production,
            )
        except Exception:
            logger.exception("Failed to initialize services")
            raise
        app.state.context = context
        logger.info("Services initialized successfully")

        yield

        logger.info(f"Shutting down {app.title}...")
        await context.close()
        logger.info("Services cleaned up successfully")

    return lifespan


def configure_cors(app: FastAPI, origins: list[str]) -> None:
    """Configure CORS middleware for the application."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[
            REQUEST_ID_HEADER,
            "Retry-After",
            "RateLimit-Limit",
            "RateLimit-Remaining",
            "RateLimit-Reset",
        ],
    )


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Log request summary and timing, tagged with a request ID."""
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
        clear_context()
        bind_request_id(request_id)

        start_time = perf_counter()
        route_info = get_summary(request) or request.method
        path = redact_secrets(str(request.url.path) + (f"?{request.url.query}" if request.url.query else ""))
        logger.info(
            "Request started", route=route_info, method=request.method, path=path, client=host(request)
        )

        response = await call_next(request)
        duration_ms = (perf_counter() - start_time) * 1000
        response.headers[REQUEST_ID_HEADER] = request_id

        logger.info(
            "Request finished",
            method=request.method,
            path=path,
            status=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Add security headers to all responses."""
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response
