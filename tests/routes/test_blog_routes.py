"""End-to-end tests for the blog routes over HTTP."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient, Response

from app.auth import AccessGate
from app.configs import LimiterConfig, Settings, TierPolicy
from app.context import ServiceContext
from app.main import create_app
from app.managers.rate_limiter import MemoryRateLimitStore, RateLimiter
from tests.helpers import ADMIN_KEY, PNG_BYTES


async def create_blog(
    client: AsyncClient,
    headers: dict[str, str],
    *,
    title: str = "A",
    tags: str | None = '["x"]',
    content: bytes = b"<p>hi</p>",
    cover: bytes | None = None,
    extra: dict[str, str] | None = None,
) -> Response:
    data: dict[str, str] = {"title": title, **(extra or {})}
    if tags is not None:
        data["tags"] = tags
    files: dict[str, Any] = {"content": ("post.html", content, "text/html")}
    if cover is not None:
        files["cover"] = ("cover.png", cover, "image/png")
    return await client.post("/blogs", data=data, files=files, headers=headers)


def limited(**tiers: TierPolicy) -> RateLimiter:
    return RateLimiter(MemoryRateLimitStore(), LimiterConfig(**tiers))


class TestBlogLifecycle:
    @pytest.mark.asyncio
    async def test_create_read_delete_flow(
        self,
        client: AsyncClient,
        context: ServiceContext,
        admin_headers: dict[str, str],
    ) -> None:
        """Create, read twice, soft delete, then permanently delete one blog."""
        created = await create_blog(client, admin_headers)
        assert created.status_code == 201
        body = created.json()
        assert body["success"] is True
        assert body["data"]["id"] == 1
        assert body["data"]["views"] == 0
        assert body["data"]["contentKey"] == "blogs/1/content.html"
        assert body["data"]["tags"] == ["x"]

        first = await client.get("/blogs/1")
        await context.blogs.drain()
        assert first.status_code == 200
        assert first.json()["data"]["views"] == 1

        second = await client.get("/blogs/1/content")
        await context.blogs.drain()
        assert second.json()["data"]["views"] == 2
        assert second.json()["data"]["content"] == "<p>hi</p>"
        assert second.json()["data"]["wordCount"] == 1

        deleted = await client.delete("/blogs/1", headers=admin_headers)
        assert deleted.status_code == 200
        assert (await client.get("/blogs/1")).status_code == 404

        purged = await client.delete("/blogs/1/permanent", headers=admin_headers)
        assert purged.status_code == 200
        assert not (context.settings.UPLOADS_DIR / "blogs" / "1").exists()
        assert (await client.delete("/blogs/1/permanent", headers=admin_headers)).status_code == 404

    @pytest.mark.asyncio
    async def test_list_with_pagination_and_tags(
        self,
        client: AsyncClient,
        admin_headers: dict[str, str],
    ) -> None:
        await create_blog(client, admin_headers, title="Yoga", tags='["yoga", "travel"]')
        await create_blog(client, admin_headers, title="Food", tags='["food", "travel"]')
        await create_blog(client, admin_headers, title="Rest", tags='["yoga"]')

        response = await client.get("/blogs", params={"page": 1, "limit": 2})
        body = response.json()
        assert [item["title"] for item in body["data"]] == ["Rest", "Food"]
        assert body["pagination"] == {"total": 3, "page": 1, "limit": 2, "totalPages": 2, "hasMore": True}

        tagged = await client.get("/blogs", params={"tags": "yoga,travel"})
        assert [item["title"] for item in tagged.json()["data"]] == ["Yoga"]

        found = await client.get("/blogs/search", params={"query": "food"})
        assert [item["title"] for item in found.json()["data"]] == ["Food"]

    @pytest.mark.asyncio
    async def test_feeds(
        self,
        client: AsyncClient,
        admin_headers: dict[str, str],
    ) -> None:
        await create_blog(client, admin_headers, title="old")
        await create_blog(client, admin_headers, title="new")
        latest = await client.get("/blogs/feed/latest", params={"limit": 1})
        assert [item["title"] for item in latest.json()["data"]] == ["new"]
        assert (await client.get("/blogs/feed/popular", params={"limit": 51})).status_code == 400

    @pytest.mark.asyncio
    async def test_api_prefix_alias(
        self,
        client: AsyncClient,
        admin_headers: dict[str, str],
    ) -> None:
        """Routes are also served under /api."""
        await create_blog(client, admin_headers)
        response = await client.get("/api/blogs")
        assert response.status_code == 200
        assert response.json()["pagination"]["total"] == 1

    @pytest.mark.asyncio
    async def test_update_partial(
        self,
        client: AsyncClient,
        admin_headers: dict[str, str],
    ) -> None:
        """Only sent fields change."""
        await create_blog(client, admin_headers, tags='["a", "b"]')
        response = await client.put(
            "/blogs/1",
            data={"title": "Renamed", "likes": "4"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["title"] == "Renamed"
        assert data["likes"] == 4
        assert data["tags"] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_cover_url_is_presigned(
        self,
        client: AsyncClient,
        admin_headers: dict[str, str],
    ) -> None:
        created = await create_blog(client, admin_headers, cover=PNG_BYTES)
        data = created.json()["data"]
        assert data["coverKey"] == "blogs/1/cover.png"
        assert data["coverUrl"].startswith("http://test/blobs/blogs/1/cover.png?token=")


class TestAccessGate:
    @pytest.mark.asyncio
    async def test_missing_key_is_401(self, client: AsyncClient) -> None:
        response = await create_blog(client, {})
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_wrong_key_is_403(self, client: AsyncClient) -> None:
        response = await create_blog(client, {"X-API-Key": "wrong"})
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_bearer_token_accepted(self, client: AsyncClient) -> None:
        response = await create_blog(client, {"Authorization": f"Bearer {ADMIN_KEY}"})
        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_deletes_are_protected(
        self,
        client: AsyncClient,
        admin_headers: dict[str, str],
    ) -> None:
        await create_blog(client, admin_headers)
        assert (await client.delete("/blogs/1")).status_code == 401
        assert (await client.delete("/blogs/1/permanent", headers={"X-API-Key": "x"})).status_code == 403
        assert (await client.get("/blogs/1")).status_code == 200

    @pytest.mark.asyncio
    async def test_unconfigured_key_is_server_error(
        self,
        client: AsyncClient,
        context: ServiceContext,
    ) -> None:
        """Without an admin key nothing can be written."""
        context.gate = AccessGate(None)
        response = await create_blog(client, {"X-API-Key": "anything"})
        assert response.status_code == 500
        assert response.json()["message"] == "Server configuration error"


class TestValidation:
    @pytest.mark.asyncio
    async def test_blank_title(
        self,
        client: AsyncClient,
        admin_headers: dict[str, str],
    ) -> None:
        response = await create_blog(client, admin_headers, title="   ")
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "title"

    @pytest.mark.asyncio
    async def test_missing_content(
        self,
        client: AsyncClient,
        admin_headers: dict[str, str],
    ) -> None:
        response = await client.post("/blogs", data={"title": "A"}, headers=admin_headers)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_malformed_tags_mean_no_tags(
        self,
        client: AsyncClient,
        admin_headers: dict[str, str],
    ) -> None:
        response = await create_blog(client, admin_headers, tags="not json")
        assert response.status_code == 201
        assert response.json()["data"]["tags"] == []

    @pytest.mark.asyncio
    async def test_too_many_tags(
        self,
        client: AsyncClient,
        admin_headers: dict[str, str],
    ) -> None:
        tags = "[" + ", ".join(f'"t{i}"' for i in range(21)) + "]"
        response = await create_blog(client, admin_headers, tags=tags)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_non_positive_read_time(
        self,
        client: AsyncClient,
        admin_headers: dict[str, str],
    ) -> None:
        response = await create_blog(client, admin_headers, extra={"readTime": "0"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_oversized_file(
        self,
        client: AsyncClient,
        context: ServiceContext,
        admin_headers: dict[str, str],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Files over the size cap are rejected with 413 and nothing is stored."""
        monkeypatch.setattr(context.settings, "MAX_FILE_SIZE", 16)
        response = await create_blog(client, admin_headers, content=b"<p>" + b"x" * 64 + b"</p>")
        assert response.status_code == 413
        assert (await client.get("/blogs")).json()["pagination"]["total"] == 0

    @pytest.mark.asyncio
    async def test_unsupported_cover(
        self,
        client: AsyncClient,
        admin_headers: dict[str, str],
    ) -> None:
        response = await client.post(
            "/blogs",
            data={"title": "A"},
            files={
                "content": ("post.html", b"<p>hi</p>", "text/html"),
                "cover": ("cover.pdf", b"%PDF", "application/pdf"),
            },
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "cover"

    @pytest.mark.asyncio
    async def test_bad_paging(self, client: AsyncClient) -> None:
        assert (await client.get("/blogs", params={"limit": 101})).status_code == 400
        assert (await client.get("/blogs", params={"page": 0})).status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_blog_envelope(self, client: AsyncClient) -> None:
        response = await client.get("/blogs/42")
        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Blog with ID 42 not found"
        assert body["errors"] == []


class TestRateLimits:
    @pytest.mark.asyncio
    async def test_headers_on_success(self, client: AsyncClient) -> None:
        """Every counted response reports the remaining quota."""
        response = await client.get("/blogs")
        assert response.headers["RateLimit-Limit"] == "100"
        assert response.headers["RateLimit-Remaining"] == "99"
        assert int(response.headers["RateLimit-Reset"]) > 0

    @pytest.mark.asyncio
    async def test_exhausted_quota(
        self,
        client: AsyncClient,
        context: ServiceContext,
    ) -> None:
        """Over the limit: 429 with Retry-After and the standard envelope."""
        context.rate_limiter = limited(public_read=TierPolicy(window_seconds=900, max_requests=2))
        for _ in range(2):
            assert (await client.get("/blogs")).status_code == 200

        response = await client.get("/blogs")
        assert response.status_code == 429
        assert 0 < int(response.headers["Retry-After"]) <= 900
        body = response.json()
        assert body["success"] is False
        assert body["retry_after"] == int(response.headers["Retry-After"])

    @pytest.mark.asyncio
    async def test_rejected_credentials_do_not_consume_admin_quota(
        self,
        client: AsyncClient,
        context: ServiceContext,
        admin_headers: dict[str, str],
    ) -> None:
        """The access gate runs before the limiter."""
        context.rate_limiter = limited(admin_write=TierPolicy(window_seconds=3600, max_requests=1))
        for _ in range(3):
            assert (await create_blog(client, {"X-API-Key": "wrong"})).status_code == 403

        assert (await create_blog(client, admin_headers)).status_code == 201
        assert (await create_blog(client, admin_headers)).status_code == 429

    @pytest.mark.asyncio
    async def test_disabled_limiter(
        self,
        client: AsyncClient,
        context: ServiceContext,
    ) -> None:
        context.rate_limiter.enabled = False
        response = await client.get("/blogs")
        assert response.status_code == 200
        assert "RateLimit-Limit" not in response.headers

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, client: AsyncClient) -> None:
        response = await client.get("/blogs", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"


@asynccontextmanager
async def client_from(settings: Settings, context: ServiceContext, peer: str) -> AsyncGenerator[AsyncClient]:
    app = create_app(settings)
    app.state.context = context
    transport = ASGITransport(app=app, client=(peer, 40000))
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class TestForwardedAddresses:
    @pytest.mark.asyncio
    async def test_untrusted_peer_cannot_rotate_forwarded_for(
        self,
        test_settings: Settings,
        context: ServiceContext,
    ) -> None:
        """A direct client is counted by its socket address whatever header it sends."""
        context.rate_limiter = limited(public_read=TierPolicy(window_seconds=900, max_requests=2))
        async with client_from(test_settings, context, "198.51.100.20") as ac:
            statuses = [
                (await ac.get("/blogs", headers={"X-Forwarded-For": f"203.0.113.{n}"})).status_code
                for n in range(3)
            ]
        assert statuses == [200, 200, 429]

    @pytest.mark.asyncio
    async def test_trusted_proxy_forwards_client_address(
        self,
        test_settings: Settings,
        context: ServiceContext,
    ) -> None:
        """Behind the configured proxy each forwarded client has its own quota."""
        context.rate_limiter = limited(public_read=TierPolicy(window_seconds=900, max_requests=2))
        async with client_from(test_settings, context, "127.0.0.1") as ac:
            statuses = [
                (await ac.get("/blogs", headers={"X-Forwarded-For": f"203.0.113.{n}"})).status_code
                for n in range(3)
            ]
        assert statuses == [200, 200, 200]
