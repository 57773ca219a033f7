"""Shared fixtures: isolated settings, a live service context and an HTTP client."""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from app.configs import Settings
from app.context import ServiceContext, build_service_context
from app.main import create_app
from app.services.blog import BlogService
from tests.helpers import ADMIN_KEY, make_settings


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture
async def context(test_settings: Settings) -> AsyncGenerator[ServiceContext]:
    ctx = await build_service_context(test_settings, create_schema=True)
    yield ctx
    await ctx.close()


@pytest.fixture
def blog_service(context: ServiceContext) -> BlogService:
    return context.blogs


@pytest.fixture
async def client(test_settings: Settings, context: ServiceContext) -> AsyncGenerator[AsyncClient]:
    app = create_app(test_settings)
    # ASGITransport does not run the lifespan; hand the app the live context
    app.state.context = context
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-API-Key": ADMIN_KEY}
