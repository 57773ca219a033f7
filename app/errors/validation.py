"""Input validation errors and FastAPI request validation handling."""

from logging import getLogger
from typing import Any, cast

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_413_CONTENT_TOO_LARGE,
)

from app.configs import file_logger
from app.errors.base import BaseAppError, create_exception_handler, error_envelope
from app.utils.helpers import host

logger = file_logger(getLogger(__name__))


class ValidationError(BaseAppError):
    """Malformed or missing input, rejected before any store is touched."""

    def __init__(
        self,
        detail: str = "Validation failed",
        errors: list[dict[str, Any]] | None = None,
        status_code: int = HTTP_400_BAD_REQUEST,
    ) -> None:
        super().__init__(detail=detail, status_code=status_code, errors=errors)

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, errors=[{"field": field, "message": message}])


class PayloadTooLargeError(ValidationError):
    """Raised when an uploaded file exceeds the configured size cap."""

    def __init__(self, field: str, limit: int) -> None:
        message = f"File '{field}' exceeds the maximum size of {limit} bytes"
        super().__init__(
            detail=message,
            errors=[{"field": field, "message": message}],
            status_code=HTTP_413_CONTENT_TOO_LARGE,
        )


def format_validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    """Flatten pydantic errors into ``{field, message, type}`` entries."""
    formatted_errors = []
    for error in exc.errors():
        loc = error.get("loc", [])
        # Skip the 'body' / 'query' / 'path' location prefix
        field = ".".join(str(part) for part in loc[1:]) or ".".join(str(part) for part in loc)
        formatted_error = {
            "field": field,
            "message": error.get("msg", "Invalid value"),
            "type": error.get("type", "validation_error"),
        }
        if "ctx" in error:
            formatted_error["context"] = {
                key: str(value) if isinstance(value, Exception) else value
                for key, value in error["ctx"].items()
            }
        formatted_errors.append(formatted_error)
    return formatted_errors


async def request_validation_exception_handler(
    request: Request,
    exc: Exception,
) -> ORJSONResponse:
    """
    Handle FastAPI request validation errors with the standard envelope.

    Args:
        request: The incoming request.
        exc: The RequestValidationError exception.

    Returns:
        ORJSONResponse with formatted validation errors.
    """
    formatted_errors = format_validation_errors(cast(RequestValidationError, exc))

    logger.warning(
        f"Validation error for ip: {host(request)} at endpoint {request.url.path}: {formatted_errors}",
    )

    return ORJSONResponse(
        status_code=HTTP_400_BAD_REQUEST,
        content=error_envelope("Validation failed", formatted_errors),
    )


validation_exception_handler = create_exception_handler(logger)
