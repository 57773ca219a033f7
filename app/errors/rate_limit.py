"""Rate limit errors."""

from logging import getLogger
from math import ceil

from starlette.status import HTTP_429_TOO_MANY_REQUESTS

from app.configs import file_logger
from app.errors.base import BaseAppError, create_exception_handler

logger = file_logger(getLogger(__name__))


class RateLimitError(BaseAppError):
    """Raised when a caller exhausts the quota of a rate-limit tier."""

    def __init__(
        self,
        tier: str,
        limit: int,
        retry_after: float,
    ) -> None:
        super().__init__(
            "Too many requests, please try again later.",
            HTTP_429_TOO_MANY_REQUESTS,
        )
        self.tier = tier
        self.limit = limit
        self.remaining = 0
        self.retry_after = max(1, ceil(retry_after))

    def headers(self) -> dict[str, str] | None:
        return {
            "Retry-After": str(self.retry_after),
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": "0",
            "RateLimit-Reset": str(self.retry_after),
        }


rate_limit_exception_handler = create_exception_handler(logger)
