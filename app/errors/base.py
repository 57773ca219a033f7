from collections.abc import Awaitable, Callable
from logging import Logger
from traceback import format_exception
from typing import Any, ClassVar

from fastapi import Request
from fastapi.responses import ORJSONResponse
from starlette.status import HTTP_500_INTERNAL_SERVER_ERROR

from app.configs import settings
from app.utils.helpers import host

BASE_EXCEPTION = (
    OSError,
    PermissionError,
    MemoryError,
    RuntimeError,
    ConnectionError,
    TimeoutError,
)


class BaseAppError(Exception):
    """Base exception class for application errors."""

    # Attributes that name internals; left out of production envelopes
    internal_fields: ClassVar[frozenset[str]] = frozenset()

    def __init__(
        self,
        detail: str = "Internal Server Error",
        status_code: int = HTTP_500_INTERNAL_SERVER_ERROR,
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code
        self.errors = errors or []

    def __str__(self) -> str:
        return self.detail

    def extra(self) -> dict[str, Any]:
        """Additional attributes rendered into the error envelope."""
        return {
            k: v
            for k, v in self.__dict__.items()
            if k not in ("status_code", "detail", "errors")
            and not k.startswith("_")
            and not (settings.is_production and k in self.internal_fields)
        }

    def headers(self) -> dict[str, str] | None:
        return None


def error_envelope(
    message: str,
    errors: list[dict[str, Any]] | None = None,
    exc: BaseException | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Build the failure envelope; stack detail is only added outside production."""
    content: dict[str, Any] = {"success": False, "message": message, "errors": errors or []}
    content.update(extra)
    if exc is not None and not settings.is_production:
        content["stack"] = "".join(format_exception(exc))
    return content


def create_exception_handler(
    logger: Logger,
) -> Callable[[Request, Exception], Awaitable[ORJSONResponse]]:
    """
    Create a standardized exception handler for the application.

    Args:
        logger: Logger instance to use for logging exceptions.

    Returns:
        A callable exception handler.
    """

    async def handler(request: Request, exc: Exception) -> ORJSONResponse:
        # Default values
        status_code = HTTP_500_INTERNAL_SERVER_ERROR
        detail = "Internal Server Error"
        errors: list[dict[str, Any]] = []
        extra: dict[str, Any] = {}
        headers = None

        # Extract from custom exception if available
        if isinstance(exc, BaseAppError):
            status_code = exc.status_code
            detail = exc.detail
            errors = exc.errors
            extra = exc.extra()
            headers = exc.headers()

        if status_code >= HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error(f"{detail} for ip: {host(request)} for endpoint {request.url.path}")
        else:
            logger.warning(f"{detail} for ip: {host(request)} for endpoint {request.url.path}")

        return ORJSONResponse(
            content=error_envelope(detail, errors, exc, **extra),
            status_code=status_code,
            headers=headers,
        )

    return handler


def create_unhandled_exception_handler(
    logger: Logger,
) -> Callable[[Request, Exception], Awaitable[ORJSONResponse]]:
    """Create the last-resort handler for exceptions outside the taxonomy."""

    async def handler(request: Request, exc: Exception) -> ORJSONResponse:
        logger.error(
            f"Unhandled {type(exc).__name__} for ip: {host(request)} for endpoint {request.url.path}",
            exc_info=exc,
        )
        return ORJSONResponse(
            content=error_envelope("Internal Server Error", exc=exc),
            status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return handler
