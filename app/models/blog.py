"""Blog database model using SQLModel."""

from datetime import UTC, datetime
from typing import cast

from pydantic import ConfigDict
from sqlalchemy import JSON, DateTime, Index, Integer
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declared_attr
from sqlmodel import Column, Field, SQLModel, String

from app.configs.settings import MAX_TITLE_LENGTH

# JSONB on PostgreSQL (GIN-indexable containment), plain JSON elsewhere
TagsType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class BlogDB(SQLModel, table=True):
    """
    Blog metadata row.

    Content and cover bytes live in the blob store; this row only keeps the
    deterministic keys pointing at them. A row whose ``content_key`` is still
    NULL is provisional (creation in flight) and never visible to readers.
    """

    __tablename__ = cast("declared_attr[str]", "blogs")

    __table_args__ = (
        Index("ix_blogs_tags_gin", "tags", postgresql_using="gin"),
        Index("ix_blogs_deleted_created", "deleted_at", "created_at"),
        # Ids are never reused, even after permanent delete
        {"sqlite_autoincrement": True},
    )

    id: int | None = Field(
        default=None,
        sa_column=Column(Integer, primary_key=True, autoincrement=True),
        description="Blog ID",
    )

    title: str = Field(
        sa_column=Column(String(MAX_TITLE_LENGTH), nullable=False),
        description="Blog title",
    )
    tags: list[str] = Field(
        default_factory=list,
        sa_column=Column(TagsType, nullable=False),
        description="Ordered, de-duplicated tags",
    )

    # Blob keys
    content_key: str | None = Field(
        default=None,
        sa_column=Column(String(512)),
        description="Blob key of the sanitized HTML content",
    )
    cover_key: str | None = Field(
        default=None,
        sa_column=Column(String(512)),
        description="Blob key of the cover image",
    )

    # Metadata fields
    read_time: int | None = Field(default=None, description="Estimated reading time in minutes")
    views: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, index=True, server_default="0"),
        description="View count",
    )
    likes: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, server_default="0"),
        description="Like count",
    )

    # Timestamps (timezone-aware)
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
        description="Creation timestamp",
    )
    updated_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
        description="Last update timestamp",
    )
    deleted_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), index=True),
        description="Soft delete timestamp",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 1,
                "title": "Finding Stillness in Rishikesh",
                "tags": ["travel", "yoga"],
                "content_key": "blogs/1/content.html",
                "cover_key": "blogs/1/cover.jpg",
                "read_time": 4,
                "views": 0,
                "likes": 0,
            },
        },
    )
