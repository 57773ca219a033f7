"""Presigned URL generation for private blobs."""

from collections.abc import Callable
from time import time
from typing import Protocol
from urllib.parse import quote

from jose import JWTError, jwt

from app.errors import PresignedUrlError, StorageError

DEFAULT_TTL_SECONDS = 3600
PRESIGN_ALGORITHM = "HS256"
PRESIGN_AUDIENCE = "blob-read"

type Clock = Callable[[], float]


class UrlSigner(Protocol):
    """Issues time-limited read URLs; never checks the key exists."""

    async def sign(self, key: str, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> str:
        ...


class TokenUrlSigner:
    """
    Signs ``/blobs/{key}`` URLs with an HS256 token for the local blob store.

    The token binds the key and an absolute expiry (``iat + ttl``). With an
    injected clock the output is a pure function of (key, clock, secret).
    """

    def __init__(
        self,
        secret: str,
        base_url: str,
        clock: Clock = time,
        route_prefix: str = "/blobs",
    ) -> None:
        self._secret = secret
        self._base_url = base_url.rstrip("/")
        self._route_prefix = route_prefix
        self._clock = clock

    def token(self, key: str, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> str:
        """
        Create the signed token for ``key``.

        Raises:
            StorageError: If the token cannot be encoded
        """
        issued_at = int(self._clock())
        claims = {
            "key": key,
            "aud": PRESIGN_AUDIENCE,
            "iat": issued_at,
            "exp": issued_at + ttl_seconds,
        }
        try:
            return jwt.encode(claims, self._secret, algorithm=PRESIGN_ALGORITHM)
        except JWTError as e:
            mssg = f"Failed to sign URL for {key}"
            raise StorageError(mssg, operation="sign", key=key) from e

    async def sign(self, key: str, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> str:
        return f"{self._base_url}{self._route_prefix}/{quote(key)}?token={self.token(key, ttl_seconds)}"

    def verify(self, key: str, token: str) -> None:
        """
        Check ``token`` was issued for ``key`` and is not yet expired.

        Expiry is evaluated against the injected clock: a URL issued at T with
        ttl 3600 is accepted up to T+3599 and rejected from T+3600 on.

        Raises:
            PresignedUrlError: If the token is malformed, mismatched or expired
        """
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[PRESIGN_ALGORITHM],
                audience=PRESIGN_AUDIENCE,
                options={"verify_exp": False, "verify_iat": False},
            )
        except JWTError as e:
            raise PresignedUrlError from e

        if claims.get("key") != key:
            raise PresignedUrlError
        expires_at = claims.get("exp")
        if not isinstance(expires_at, int) or self._clock() >= expires_at:
            raise PresignedUrlError


class NativePresigner(Protocol):
    async def presign(self, key: str, ttl_seconds: int) -> str:
        ...


class S3UrlSigner:
    """Delegates to the bucket's native presigned GET URLs."""

    def __init__(self, store: NativePresigner) -> None:
        self._store = store

    async def sign(self, key: str, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> str:
        return await self._store.presign(key, ttl_seconds)
