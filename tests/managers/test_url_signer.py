"""Tests for presigned blob URLs."""

from unittest.mock import AsyncMock
from urllib.parse import parse_qs, urlsplit

import pytest

from app.errors import PresignedUrlError
from app.managers.url_signer import S3UrlSigner, TokenUrlSigner

ISSUED_AT = 1_700_000_000.0


class Clock:
    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def token_of(url: str) -> str:
    return parse_qs(urlsplit(url).query)["token"][0]


@pytest.fixture
def clock() -> Clock:
    return Clock(ISSUED_AT)


@pytest.fixture
def signer(clock: Clock) -> TokenUrlSigner:
    return TokenUrlSigner("secret", "http://test/", clock=clock)


class TestTokenUrlSigner:
    @pytest.mark.asyncio
    async def test_url_shape(self, signer: TokenUrlSigner) -> None:
        """URLs point at the blob route with the key as the path."""
        url = await signer.sign("blogs/1/cover.png", 3600)
        parts = urlsplit(url)
        assert f"{parts.scheme}://{parts.netloc}{parts.path}" == "http://test/blobs/blogs/1/cover.png"
        assert token_of(url)

    @pytest.mark.asyncio
    async def test_deterministic_for_fixed_clock(self, signer: TokenUrlSigner) -> None:
        """Same key, clock and secret produce the same URL."""
        assert await signer.sign("blogs/1/cover.png") == await signer.sign("blogs/1/cover.png")

    @pytest.mark.asyncio
    async def test_valid_just_before_expiry(self, signer: TokenUrlSigner, clock: Clock) -> None:
        """A one-hour URL still works at T+3599."""
        token = token_of(await signer.sign("blogs/1/cover.png", 3600))
        clock.now = ISSUED_AT + 3599
        signer.verify("blogs/1/cover.png", token)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("elapsed", [3600, 3601])
    async def test_rejected_after_expiry(self, signer: TokenUrlSigner, clock: Clock, elapsed: int) -> None:
        """From T+3600 on the URL is refused."""
        token = token_of(await signer.sign("blogs/1/cover.png", 3600))
        clock.now = ISSUED_AT + elapsed
        with pytest.raises(PresignedUrlError):
            signer.verify("blogs/1/cover.png", token)

    @pytest.mark.asyncio
    async def test_token_bound_to_key(self, signer: TokenUrlSigner) -> None:
        """A token for one blob cannot unlock another."""
        token = token_of(await signer.sign("blogs/1/cover.png"))
        with pytest.raises(PresignedUrlError):
            signer.verify("blogs/2/cover.png", token)

    @pytest.mark.asyncio
    async def test_foreign_secret_rejected(self, signer: TokenUrlSigner, clock: Clock) -> None:
        """Tokens signed with another secret are refused."""
        other = TokenUrlSigner("other-secret", "http://test", clock=clock)
        token = token_of(await other.sign("blogs/1/cover.png"))
        with pytest.raises(PresignedUrlError):
            signer.verify("blogs/1/cover.png", token)

    def test_garbage_token_rejected(self, signer: TokenUrlSigner) -> None:
        with pytest.raises(PresignedUrlError):
            signer.verify("blogs/1/cover.png", "not-a-token")


class TestS3UrlSigner:
    @pytest.mark.asyncio
    async def test_delegates_to_native_presign(self) -> None:
        """S3 issues its own presigned GET URLs."""
        store = AsyncMock()
        store.presign.return_value = "https://bucket.s3/blogs/1/cover.png?X-Amz-Signature=x"
        url = await S3UrlSigner(store).sign("blogs/1/cover.png", 3600)
        assert url.startswith("https://bucket.s3/")
        store.presign.assert_awaited_once_with("blogs/1/cover.png", 3600)
