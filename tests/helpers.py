"""Builders shared across test modules."""

from pathlib import Path

from pydantic import SecretStr

from app.configs import Settings
from app.schemas.blog import BlogDraft, UploadedFile

ADMIN_KEY = "test-admin-key"
PRESIGN_SECRET = "test-presign-secret"

# PNG signature plus padding; covers are stored as opaque bytes
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def make_settings(tmp_path: Path, **overrides: object) -> Settings:
    values: dict[str, object] = {
        "ENVIRONMENT": "test",
        "DATABASE_URL": f"sqlite+aiosqlite:///{tmp_path / 'blog.db'}",
        "UPLOADS_DIR": tmp_path / "uploads",
        "ADMIN_API_KEY": SecretStr(ADMIN_KEY),
        "PRESIGN_SECRET": SecretStr(PRESIGN_SECRET),
        "PUBLIC_BASE_URL": "http://test",
        "REDIS_ENABLED": False,
        "RATE_LIMIT_ENABLED": True,
        "RATE_LIMIT_BACKEND": "memory",
        "STORAGE_PROVIDER": "local",
        "METADATA_TIMEOUT": 5.0,
        "STORAGE_TIMEOUT": 5.0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)  # type: ignore[call-arg]


def html_file(body: str = "<p>hi</p>", filename: str = "post.html") -> UploadedFile:
    return UploadedFile(data=body.encode("utf-8"), content_type="text/html", filename=filename)


def png_file() -> UploadedFile:
    return UploadedFile(data=PNG_BYTES, content_type="image/png", filename="cover.png")


def draft(title: str = "A", tags: list[str] | None = None, read_time: int | None = None) -> BlogDraft:
    return BlogDraft(title=title, tags=tags or [], read_time=read_time)
