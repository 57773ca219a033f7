"""
Blob store protocol and key derivation.

This module defines the interface for blob storage backends (local
filesystem, S3) and the deterministic key layout every backend shares:

    blogs/{id}/content.html
    blogs/{id}/cover.{ext}

Keys depend only on the blog id and a fixed slot name, so renaming a blog
never relocates its blobs and no two blogs share a prefix.
"""

from abc import abstractmethod
from asyncio import timeout as asyncio_timeout
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import ClassVar, Protocol, runtime_checkable

from app.errors import StorageError
from app.monitoring import get_logger

logger = get_logger(__name__)

BLOG_ROOT = "blogs"
CONTENT_SLOT = "content.html"
CONTENT_TYPE_HTML = "text/html; charset=utf-8"

COVER_EXTENSIONS: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/avif": "avif",
}


def blog_prefix(blog_id: int) -> str:
    """Return the key prefix owning every blob of a blog."""
    return f"{BLOG_ROOT}/{blog_id}/"


def content_key(blog_id: int) -> str:
    return f"{blog_prefix(blog_id)}{CONTENT_SLOT}"


def cover_key(blog_id: int, extension: str) -> str:
    return f"{blog_prefix(blog_id)}cover.{extension}"


def cover_extension(content_type: str | None) -> str | None:
    """
    Map a declared image MIME type to the cover file extension.

    Returns:
        str | None: Extension, or None when the type is not an accepted cover
    """
    if not content_type:
        return None
    return COVER_EXTENSIONS.get(content_type.split(";", 1)[0].strip().lower())


@runtime_checkable
class BlobStore(Protocol):
    """
    Protocol defining the interface for blob stores.

    All writes overwrite in place. Failures surface as ``StorageError``;
    a missing key on ``get`` raises ``BlobNotFoundError``.
    """

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str) -> None:
        """Store ``data`` under ``key``, replacing any existing object."""
        ...

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Return the object stored under ``key``."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete ``key``; deleting a missing key is not an error."""
        ...

    @abstractmethod
    async def delete_prefix(self, prefix: str) -> int:
        """Delete every object whose key starts with ``prefix``; return how many."""
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool:
        ...

    @abstractmethod
    async def ping(self) -> bool:
        """Check the backing store is reachable."""
        ...


class BaseBlobStore:
    """Shared timeout and error translation for blob store backends."""

    # Backend-specific I/O errors translated into StorageError
    translated_errors: ClassVar[tuple[type[Exception], ...]] = (OSError,)

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout

    @asynccontextmanager
    async def _operation(self, operation: str, key: str) -> AsyncGenerator[None]:
        """Bound one store call by ``timeout`` and translate backend failures."""
        try:
            async with asyncio_timeout(self.timeout):
                yield
        except TimeoutError as e:
            logger.error("Blob store call timed out", operation=operation, key=key, timeout=self.timeout)
            mssg = f"Blob store {operation} timed out after {self.timeout}s"
            raise StorageError(mssg, operation=operation, key=key) from e
        except self.translated_errors as e:
            logger.error("Blob store call failed", operation=operation, key=key, error=str(e))
            mssg = f"Blob store {operation} failed for key {key}"
            raise StorageError(mssg, operation=operation, key=key) from e
