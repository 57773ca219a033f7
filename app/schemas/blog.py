"""
Blog schemas for the BeyondMoksha blog API.

Input models validate the scalar multipart fields before the lifecycle
service runs; response models expose the camelCase wire format.
"""

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.configs.settings import MAX_TAG_LENGTH, MAX_TAGS, MAX_TITLE_LENGTH


@dataclass(frozen=True, slots=True)
class UploadedFile:
    """An uploaded file part, already read into memory and size-checked."""

    data: bytes
    content_type: str | None = None
    filename: str | None = None


def _check_tags(tags: list[str]) -> list[str]:
    if len(tags) > MAX_TAGS:
        mssg = f"At most {MAX_TAGS} tags are allowed"
        raise ValueError(mssg)
    for tag in tags:
        if len(tag) > MAX_TAG_LENGTH:
            mssg = f"Tag '{tag[:20]}...' exceeds {MAX_TAG_LENGTH} characters"
            raise ValueError(mssg)
    return tags


class BlogDraft(BaseModel):
    """Scalar fields of a blog creation request."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    title: str = Field(
        ...,
        min_length=1,
        max_length=MAX_TITLE_LENGTH,
        description="Blog title",
        examples=["Finding Stillness in Rishikesh"],
    )
    tags: list[str] = Field(
        default_factory=list,
        description="Blog tags, insertion order preserved",
        examples=[["travel", "yoga"]],
    )
    read_time: int | None = Field(
        default=None,
        gt=0,
        alias="readTime",
        description="Reading time in minutes; computed from the content when omitted",
    )

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, tags: list[str]) -> list[str]:
        return _check_tags(tags)


class BlogChanges(BaseModel):
    """
    Partial update of a blog's scalar fields.

    Only fields present in ``model_fields_set`` are written; everything else
    is left untouched.
    """

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    title: str | None = Field(default=None, min_length=1, max_length=MAX_TITLE_LENGTH)
    tags: list[str] | None = None
    read_time: int | None = Field(default=None, gt=0, alias="readTime")
    views: int | None = Field(default=None, ge=0, description="Administrative overwrite")
    likes: int | None = Field(default=None, ge=0, description="Administrative overwrite")

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, tags: list[str] | None) -> list[str] | None:
        return None if tags is None else _check_tags(tags)

    def provided(self) -> dict[str, object]:
        """Fields the caller actually sent, with ``None`` values dropped."""
        return {
            name: value
            for name, value in self.model_dump(exclude_unset=True).items()
            if value is not None
        }


class BlogResponse(BaseModel):
    """Blog metadata as returned to readers."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        serialize_by_alias=True,
    )

    id: int = Field(..., description="Blog ID", examples=[1])
    title: str = Field(..., description="Blog title")
    tags: list[str] = Field(default_factory=list)
    content_key: str = Field(..., examples=["blogs/1/content.html"])
    cover_key: str | None = Field(default=None, examples=["blogs/1/cover.jpg"])
    cover_url: str | None = Field(default=None, description="Presigned cover URL, valid for one hour")
    read_time: int | None = None
    views: int = Field(default=0, ge=0)
    likes: int = Field(default=0, ge=0)
    created_at: datetime
    updated_at: datetime


class BlogContentResponse(BlogResponse):
    """Blog metadata plus its sanitized HTML body."""

    content: str = Field(..., description="Sanitized HTML, returned verbatim")
    excerpt: str = Field(..., description="Plain-text excerpt of the content")
    word_count: int = Field(..., ge=0)


class Pagination(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, serialize_by_alias=True)

    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    total_pages: int = Field(..., ge=0)
    has_more: bool


class BlogPage(BaseModel):
    """One page of list or search results."""

    items: list[BlogResponse]
    pagination: Pagination


class ContentBody(BaseModel):
    """Cached content body together with its derived text statistics."""

    html: str
    excerpt: str
    word_count: int
