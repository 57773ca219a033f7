"""
Storage error classes.

Both the blob store and the metadata store surface I/O failures as
``StorageError``; the status code distinguishes the failing side.
"""

from typing import ClassVar

from starlette.status import HTTP_502_BAD_GATEWAY, HTTP_503_SERVICE_UNAVAILABLE

from app.errors.base import BaseAppError, create_exception_handler
from app.errors.database import NotFoundError
from app.monitoring import get_logger

logger = get_logger(__name__)


class StorageError(BaseAppError):
    """Raised when a blob or metadata store operation fails or times out."""

    internal_fields: ClassVar[frozenset[str]] = frozenset({"operation", "key"})

    def __init__(
        self,
        detail: str = "Storage operation failed",
        operation: str | None = None,
        key: str | None = None,
        status_code: int = HTTP_502_BAD_GATEWAY,
    ) -> None:
        super().__init__(detail=detail, status_code=status_code)
        self.operation = operation
        self.key = key


class BlobNotFoundError(NotFoundError):
    """Raised when a key has no object in the blob store."""

    internal_fields: ClassVar[frozenset[str]] = frozenset({"key"})

    def __init__(self, key: str) -> None:
        super().__init__(f"Blob {key} not found")
        self.key = key


class MetadataStoreError(StorageError):
    """Raised when the relational store is unreachable or times out."""

    def __init__(self, detail: str = "Metadata store unavailable", operation: str | None = None) -> None:
        super().__init__(detail, operation=operation, status_code=HTTP_503_SERVICE_UNAVAILABLE)


storage_exception_handler = create_exception_handler(logger)  # type: ignore[arg-type]
