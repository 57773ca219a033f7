"""
S3-compatible blob store using aioboto3.

One client is opened at startup (``connect``) and shared by every request
until ``close``; it is owned by the service context, never a module global.
"""

from contextlib import AsyncExitStack
from typing import Any, ClassVar

import aioboto3
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from app.decorators.with_retry import with_retry
from app.errors import BlobNotFoundError, StorageError
from app.monitoring import get_logger
from app.services.storage.base import BaseBlobStore

logger = get_logger(__name__)

# Transient transport failures worth retrying for idempotent calls
S3_RETRIABLE = (EndpointConnectionError, ConnectionClosedError, ReadTimeoutError)

NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})

# S3 DeleteObjects accepts at most 1000 keys per call
DELETE_BATCH_SIZE = 1000


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class S3BlobStore(BaseBlobStore):
    """Blob store backed by a private S3 bucket."""

    translated_errors: ClassVar[tuple[type[Exception], ...]] = (ClientError, BotoCoreError, OSError)

    def __init__(
        self,
        bucket: str,
        region: str,
        endpoint_url: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        timeout: float = 15.0,
        session: aioboto3.Session | None = None,
    ) -> None:
        super().__init__(timeout)
        self.bucket = bucket
        self.region = region
        self._session = session or aioboto3.Session(
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name=region,
        )
        self._endpoint_url = endpoint_url
        self._exit_stack: AsyncExitStack | None = None
        self._client: Any = None

    async def connect(self) -> None:
        """Open the shared S3 client."""
        if self._client is not None:
            return
        self._exit_stack = AsyncExitStack()
        self._client = await self._exit_stack.enter_async_context(
            self._session.client("s3", endpoint_url=self._endpoint_url),
        )
        logger.info("S3 client opened", bucket=self.bucket, region=self.region)

    async def close(self) -> None:
        if self._exit_stack is not None:
            await self._exit_stack.aclose()
        self._exit_stack = None
        self._client = None

    @property
    def client(self) -> Any:
        if self._client is None:
            mssg = "S3 client not initialized. Call connect() first."
            raise StorageError(mssg, operation="connect")
        return self._client

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        async with self._operation("put", key):
            await self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        logger.debug("Uploaded blob to S3", key=key, size=len(data))

    @with_retry(exec_retry=S3_RETRIABLE)
    async def _read_object(self, key: str) -> bytes:
        response = await self.client.get_object(Bucket=self.bucket, Key=key)
        async with response["Body"] as stream:
            return await stream.read()

    async def get(self, key: str) -> bytes:
        async with self._operation("get", key):
            try:
                return await self._read_object(key)
            except ClientError as e:
                if _error_code(e) in NOT_FOUND_CODES:
                    raise BlobNotFoundError(key) from e
                raise

    async def delete(self, key: str) -> None:
        # S3 DeleteObject already succeeds for missing keys
        async with self._operation("delete", key):
            await self.client.delete_object(Bucket=self.bucket, Key=key)

    async def _delete_batch(self, keys: list[str]) -> None:
        response = await self.client.delete_objects(
            Bucket=self.bucket,
            Delete={"Objects": [{"Key": key} for key in keys], "Quiet": True},
        )
        if errors := response.get("Errors"):
            failed = [error.get("Key", "") for error in errors]
            mssg = f"Failed to delete {len(failed)} blob(s): {', '.join(failed)}"
            raise StorageError(mssg, operation="delete_prefix", key=failed[0])

    async def delete_prefix(self, prefix: str) -> int:
        if not prefix:
            mssg = "Refusing to delete with an empty prefix"
            raise StorageError(mssg, operation="delete_prefix", key=prefix)

        deleted = 0
        async with self._operation("delete_prefix", prefix):
            paginator = self.client.get_paginator("list_objects_v2")
            batch: list[str] = []
            async for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for item in page.get("Contents", []):
                    batch.append(item["Key"])
                    if len(batch) == DELETE_BATCH_SIZE:
                        await self._delete_batch(batch)
                        deleted += len(batch)
                        batch = []
            if batch:
                await self._delete_batch(batch)
                deleted += len(batch)

        logger.info("Deleted blobs by prefix", prefix=prefix, count=deleted)
        return deleted

    @with_retry(exec_retry=S3_RETRIABLE)
    async def _head(self, key: str) -> bool:
        try:
            await self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                return False
            raise
        return True

    async def exists(self, key: str) -> bool:
        async with self._operation("exists", key):
            return await self._head(key)

    async def ping(self) -> bool:
        async with self._operation("ping", self.bucket):
            await self.client.head_bucket(Bucket=self.bucket)
        return True

    async def presign(self, key: str, ttl_seconds: int) -> str:
        """Issue a native S3 presigned GET URL."""
        async with self._operation("presign", key):
            return await self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=ttl_seconds,
            )
