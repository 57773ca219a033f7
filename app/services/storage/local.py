"""
Local filesystem blob store.

Objects are stored as files under ``UPLOADS_DIR`` with the key as the
relative path. Suitable for development, tests and single-node deployments;
private reads go through token-signed URLs served by ``/blobs``.
"""

from asyncio import to_thread
from contextlib import suppress
from pathlib import Path, PurePosixPath
from uuid import uuid4

import aiofiles
import aiofiles.os

from app.errors import BlobNotFoundError, StorageError
from app.monitoring import get_logger
from app.services.storage.base import BaseBlobStore

logger = get_logger(__name__)


class LocalBlobStore(BaseBlobStore):
    """
    Local filesystem storage implementation.

    Writes go to a temporary sibling file which is then renamed over the
    target, so readers never observe a half-written object.
    """

    def __init__(self, root: Path, timeout: float = 15.0) -> None:
        super().__init__(timeout)
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        """
        Resolve a key to a path inside ``root``.

        Raises:
            StorageError: If the key is absolute or escapes the root
        """
        parts = PurePosixPath(key).parts
        if not parts or PurePosixPath(key).is_absolute() or ".." in parts:
            mssg = f"Invalid blob key: {key!r}"
            raise StorageError(mssg, operation="resolve", key=key)
        return self.root.joinpath(*parts)

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        path = self._path(key)
        tmp_path = path.with_name(f".{path.name}.{uuid4().hex}.tmp")
        async with self._operation("put", key):
            await aiofiles.os.makedirs(path.parent, exist_ok=True)
            try:
                async with aiofiles.open(tmp_path, "wb") as f:
                    await f.write(data)
                await aiofiles.os.replace(tmp_path, path)
            finally:
                with suppress(FileNotFoundError):
                    await aiofiles.os.remove(tmp_path)
        logger.debug("Stored blob", key=key, size=len(data), content_type=content_type)

    async def get(self, key: str) -> bytes:
        path = self._path(key)
        async with self._operation("get", key):
            try:
                async with aiofiles.open(path, "rb") as f:
                    return await f.read()
            except FileNotFoundError as e:
                raise BlobNotFoundError(key) from e

    async def delete(self, key: str) -> None:
        path = self._path(key)
        async with self._operation("delete", key):
            with suppress(FileNotFoundError):
                await aiofiles.os.remove(path)

    def _collect(self, prefix: str) -> list[Path]:
        """Files whose key starts with ``prefix`` (blocking, run in a thread)."""
        head, _, _ = prefix.rpartition("/")
        base = self._path(head) if head else self.root
        if not base.is_dir():
            return []
        return [
            path
            for path in base.rglob("*")
            if path.is_file() and path.relative_to(self.root).as_posix().startswith(prefix)
        ]

    def _prune(self, prefix: str) -> None:
        """Remove directories left empty under ``prefix`` (blocking)."""
        head, _, _ = prefix.rpartition("/")
        if not head:
            return
        directory = self._path(head)
        while directory != self.root and directory.is_dir() and not any(directory.iterdir()):
            directory.rmdir()
            directory = directory.parent

    async def delete_prefix(self, prefix: str) -> int:
        if not prefix:
            mssg = "Refusing to delete with an empty prefix"
            raise StorageError(mssg, operation="delete_prefix", key=prefix)

        async with self._operation("delete_prefix", prefix):
            paths = await to_thread(self._collect, prefix)
            for path in paths:
                with suppress(FileNotFoundError):
                    await aiofiles.os.remove(path)
            await to_thread(self._prune, prefix)

        logger.info("Deleted blobs by prefix", prefix=prefix, count=len(paths))
        return len(paths)

    async def exists(self, key: str) -> bool:
        async with self._operation("exists", key):
            return await aiofiles.os.path.isfile(self._path(key))

    async def ping(self) -> bool:
        async with self._operation("ping", str(self.root)):
            return await aiofiles.os.path.isdir(self.root)
