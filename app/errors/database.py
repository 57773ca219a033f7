from logging import getLogger

from starlette.status import HTTP_404_NOT_FOUND, HTTP_409_CONFLICT

from app.configs import file_logger
from app.errors.base import BaseAppError, create_exception_handler

logger = file_logger(getLogger(__name__))


class NotFoundError(BaseAppError):
    """Exception raised when a blog is unknown or soft-deleted."""

    def __init__(
        self,
        detail: str = "Blog not found",
    ) -> None:
        super().__init__(detail, HTTP_404_NOT_FOUND)

    @classmethod
    def blog(cls, blog_id: int) -> "NotFoundError":
        return cls(f"Blog with ID {blog_id} not found")


class ConflictError(BaseAppError):
    """Exception raised when a write violates a uniqueness constraint."""

    def __init__(
        self,
        detail: str = "A record with this value already exists",
    ) -> None:
        super().__init__(detail, HTTP_409_CONFLICT)


database_exception_handler = create_exception_handler(logger)
