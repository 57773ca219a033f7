"""
Storage services package.

This package provides blob store backends for blog content and covers,
with support for the local filesystem and S3-compatible buckets.
"""

from app.configs.settings import Settings
from app.services.storage.base import (
    CONTENT_TYPE_HTML,
    BlobStore,
    blog_prefix,
    content_key,
    cover_extension,
    cover_key,
)
from app.services.storage.local import LocalBlobStore
from app.services.storage.s3 import S3BlobStore


def build_blob_store(settings: Settings) -> LocalBlobStore | S3BlobStore:
    """
    Build the blob store selected by ``STORAGE_PROVIDER``.

    Raises:
        ValueError: If the S3 provider is selected without a bucket
    """
    if settings.STORAGE_PROVIDER == "s3":
        if not settings.S3_BUCKET:
            mssg = "S3_BUCKET is required when STORAGE_PROVIDER=s3"
            raise ValueError(mssg)
        return S3BlobStore(
            bucket=settings.S3_BUCKET,
            region=settings.S3_REGION,
            endpoint_url=settings.S3_ENDPOINT_URL,
            access_key_id=settings.AWS_ACCESS_KEY_ID,
            secret_access_key=(
                settings.AWS_SECRET_ACCESS_KEY.get_secret_value()
                if settings.AWS_SECRET_ACCESS_KEY
                else None
            ),
            timeout=settings.STORAGE_TIMEOUT,
        )
    return LocalBlobStore(settings.UPLOADS_DIR, timeout=settings.STORAGE_TIMEOUT)


__all__ = [
    "CONTENT_TYPE_HTML",
    "BlobStore",
    "LocalBlobStore",
    "S3BlobStore",
    "blog_prefix",
    "build_blob_store",
    "content_key",
    "cover_extension",
    "cover_key",
]
