"""Access gate errors."""

from logging import getLogger
from typing import Literal

from starlette.status import (
    HTTP_401_UNAUTHORIZED,
    HTTP_403_FORBIDDEN,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from app.configs import file_logger
from app.errors.base import BaseAppError, create_exception_handler

logger = file_logger(getLogger(__name__))

type AuthFailure = Literal["missing", "invalid"]


class AuthError(BaseAppError):
    """Raised when the admin credential is missing or does not match."""

    def __init__(self, reason: AuthFailure) -> None:
        if reason == "missing":
            super().__init__(
                "API key is required. Provide it in the X-API-Key header or as a Bearer token.",
                HTTP_401_UNAUTHORIZED,
            )
        else:
            super().__init__("Invalid API key", HTTP_403_FORBIDDEN)
        self.reason = reason

    def headers(self) -> dict[str, str] | None:
        if self.reason == "missing":
            return {"WWW-Authenticate": "Bearer"}
        return None


class PresignedUrlError(BaseAppError):
    """Raised when a presigned blob URL is tampered with, mismatched or expired."""

    def __init__(self, detail: str = "Link is invalid or has expired") -> None:
        super().__init__(detail, HTTP_403_FORBIDDEN)


class AccessGateConfigurationError(BaseAppError):
    """Raised when a protected route is hit but no admin secret is configured."""

    def __init__(self) -> None:
        super().__init__("Server configuration error", HTTP_500_INTERNAL_SERVER_ERROR)


auth_exception_handler = create_exception_handler(logger)
