# app/routes/blog.py

"""
Blog Routes.

Public read endpoints and API-key protected write endpoints for blogs.

Summary
-------
Endpoints include:
  - List blogs (tag subset filter, search, pagination)
  - Search blogs
  - Latest and popular feeds
  - Get blog by id, with or without its content
  - Create blog (multipart)
  - Update blog (multipart, partial)
  - Soft delete and permanent delete

Dependencies
------------
  - `require_api_key`: Access gate for protected routes; always runs before
    the rate limiter.
  - `rate_limit(tier)`: Counts the request against its tier and sets the
    `RateLimit-*` headers.

Rate Limiting
-------------
Reads use the `public-read` tier (100 requests / 15 minutes per address).
Writes use `admin-write` (50 / hour) and deletes `admin-delete` (20 / hour),
both counted per API key.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, File, Form, Path, Query, UploadFile
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from starlette.status import HTTP_201_CREATED

from app.configs.settings import DEFAULT_FEED_LIMIT, DEFAULT_PAGE_SIZE, MAX_FEED_LIMIT, MAX_PAGE_SIZE
from app.dependencies import (
    BlogListQueryDep,
    BlogServiceDep,
    ContextDep,
    rate_limit,
    read_upload,
    require_api_key,
)
from app.errors import ValidationError
from app.managers.rate_limiter import Tier
from app.schemas.blog import BlogChanges, BlogContentResponse, BlogDraft, BlogResponse
from app.schemas.response import ApiResponse
from app.utils.helpers import parse_tags

router = APIRouter(prefix="/blogs", tags=["📝 Blogs"])

BlogId = Annotated[int, Path(ge=1, description="Blog ID")]

PUBLIC_READ = [Depends(rate_limit(Tier.PUBLIC_READ))]
ADMIN_WRITE = [Depends(require_api_key), Depends(rate_limit(Tier.ADMIN_WRITE))]
ADMIN_DELETE = [Depends(require_api_key), Depends(rate_limit(Tier.ADMIN_DELETE))]

ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"description": "Validation failed"},
    429: {
        "description": "Rate limit exceeded",
        "content": {
            "application/json": {
                "example": {
                    "success": False,
                    "message": "Too many requests, please try again later.",
                    "errors": [],
                    "retry_after": 812,
                },
            },
        },
    },
}
NOT_FOUND_RESPONSE: dict[int | str, dict[str, Any]] = {404: {"description": "Blog not found"}}
AUTH_RESPONSES: dict[int | str, dict[str, Any]] = {
    401: {"description": "API key missing"},
    403: {"description": "API key invalid"},
    413: {"description": "Uploaded file too large"},
    502: {"description": "Blob store failure"},
}


def _validated[M: BaseModel](model: type[M], data: dict[str, Any]) -> M:
    """Validate form fields, reporting failures in the standard envelope."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        errors = [
            {
                "field": ".".join(str(part) for part in error["loc"]) or "body",
                "message": error["msg"],
                "type": error["type"],
            }
            for error in e.errors(include_url=False)
        ]
        raise ValidationError("Validation failed", errors=errors) from e


@router.get(
    "",
    response_model=ApiResponse[list[BlogResponse]],
    summary="List blogs",
    dependencies=PUBLIC_READ,
    responses=ERROR_RESPONSES,
    operation_id="blogs_list",
)
async def list_blogs(blogs: BlogServiceDep, query: BlogListQueryDep) -> ApiResponse[list[BlogResponse]]:
    """
    List visible blogs, newest first.

    Parameters
    ----------
    blogs : BlogService
        Lifecycle service.
    query : BlogListQuery
        Page, page size, tag subset (`tags=a,b`) and search query.

    Returns
    -------
    ApiResponse[list[BlogResponse]]
        The page with pagination metadata.
    """
    page = await blogs.list(query.page, query.limit, query.tags, query.search)
    return ApiResponse(data=page.items, pagination=page.pagination)


@router.get(
    "/search",
    response_model=ApiResponse[list[BlogResponse]],
    summary="Search blogs",
    dependencies=PUBLIC_READ,
    responses=ERROR_RESPONSES,
    operation_id="blogs_search",
)
async def search_blogs(
    blogs: BlogServiceDep,
    query: Annotated[str, Query(min_length=1, max_length=200, description="Search query")],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = DEFAULT_PAGE_SIZE,
) -> ApiResponse[list[BlogResponse]]:
    """Full-text search over titles and tags."""
    result = await blogs.search(query, page, limit)
    return ApiResponse(data=result.items, pagination=result.pagination)


@router.get(
    "/feed/latest",
    response_model=ApiResponse[list[BlogResponse]],
    summary="Latest blogs",
    dependencies=PUBLIC_READ,
    responses=ERROR_RESPONSES,
    operation_id="blogs_feed_latest",
)
async def latest_blogs(
    blogs: BlogServiceDep,
    limit: Annotated[int, Query(ge=1, le=MAX_FEED_LIMIT)] = DEFAULT_FEED_LIMIT,
) -> ApiResponse[list[BlogResponse]]:
    return ApiResponse(data=await blogs.latest(limit))


@router.get(
    "/feed/popular",
    response_model=ApiResponse[list[BlogResponse]],
    summary="Most viewed blogs",
    dependencies=PUBLIC_READ,
    responses=ERROR_RESPONSES,
    operation_id="blogs_feed_popular",
)
async def popular_blogs(
    blogs: BlogServiceDep,
    limit: Annotated[int, Query(ge=1, le=MAX_FEED_LIMIT)] = DEFAULT_FEED_LIMIT,
) -> ApiResponse[list[BlogResponse]]:
    return ApiResponse(data=await blogs.popular(limit))


@router.get(
    "/{blog_id}",
    response_model=ApiResponse[BlogResponse],
    summary="Get blog by ID",
    dependencies=PUBLIC_READ,
    responses=ERROR_RESPONSES | NOT_FOUND_RESPONSE,
    operation_id="blogs_get",
)
async def get_blog(blogs: BlogServiceDep, blog_id: BlogId) -> ApiResponse[BlogResponse]:
    """
    Get blog metadata and count the view.

    Parameters
    ----------
    blogs : BlogService
        Lifecycle service.
    blog_id : int
        Blog ID.

    Returns
    -------
    ApiResponse[BlogResponse]
        The blog, with a presigned cover URL when it has a cover.
    """
    return ApiResponse(data=await blogs.get(blog_id))


@router.get(
    "/{blog_id}/content",
    response_model=ApiResponse[BlogContentResponse],
    summary="Get blog with content",
    dependencies=PUBLIC_READ,
    responses=ERROR_RESPONSES | NOT_FOUND_RESPONSE,
    operation_id="blogs_get_content",
)
async def get_blog_content(blogs: BlogServiceDep, blog_id: BlogId) -> ApiResponse[BlogContentResponse]:
    """Get blog metadata together with its sanitized HTML content."""
    return ApiResponse(data=await blogs.get_with_content(blog_id))


@router.post(
    "",
    status_code=HTTP_201_CREATED,
    response_model=ApiResponse[BlogResponse],
    summary="Create blog",
    dependencies=ADMIN_WRITE,
    responses=ERROR_RESPONSES | AUTH_RESPONSES,
    operation_id="blogs_create",
)
async def create_blog(
    blogs: BlogServiceDep,
    context: ContextDep,
    title: Annotated[str, Form(description="Blog title")],
    content: Annotated[UploadFile, File(description="HTML, Markdown or plain text body")],
    tags: Annotated[str | None, Form(description='JSON array, e.g. ["travel", "yoga"]')] = None,
    read_time: Annotated[int | None, Form(alias="readTime", description="Minutes")] = None,
    cover: Annotated[UploadFile | None, File(description="JPEG, PNG, WebP, GIF or AVIF")] = None,
) -> ApiResponse[BlogResponse]:
    """
    Create a blog from a multipart form.

    Parameters
    ----------
    title : str
        Blog title.
    content : UploadFile
        Body file; sanitized before it is stored.
    tags : str | None
        JSON array string; malformed input yields no tags.
    read_time : int | None
        Reading time in minutes; computed from the content when omitted.
    cover : UploadFile | None
        Optional cover image.

    Returns
    -------
    ApiResponse[BlogResponse]
        The created blog.
    """
    max_size = context.settings.MAX_FILE_SIZE
    draft = _validated(BlogDraft, {"title": title, "tags": parse_tags(tags), "read_time": read_time})
    content_file = await read_upload(content, "content", max_size)
    if content_file is None:
        raise ValidationError.for_field("content", "Content file is required")
    cover_file = await read_upload(cover, "cover", max_size)

    blog = await blogs.create(draft, content_file, cover_file)
    return ApiResponse(data=blog, message="Blog created successfully")


@router.put(
    "/{blog_id}",
    response_model=ApiResponse[BlogResponse],
    summary="Update blog",
    dependencies=ADMIN_WRITE,
    responses=ERROR_RESPONSES | AUTH_RESPONSES | NOT_FOUND_RESPONSE,
    operation_id="blogs_update",
)
async def update_blog(
    blogs: BlogServiceDep,
    context: ContextDep,
    blog_id: BlogId,
    title: Annotated[str | None, Form()] = None,
    tags: Annotated[str | None, Form(description="JSON array string")] = None,
    read_time: Annotated[int | None, Form(alias="readTime")] = None,
    views: Annotated[int | None, Form(description="Administrative overwrite")] = None,
    likes: Annotated[int | None, Form(description="Administrative overwrite")] = None,
    content: Annotated[UploadFile | None, File()] = None,
    cover: Annotated[UploadFile | None, File()] = None,
) -> ApiResponse[BlogResponse]:
    """
    Partially update a blog; fields not sent are left untouched.

    Returns
    -------
    ApiResponse[BlogResponse]
        The updated blog.
    """
    max_size = context.settings.MAX_FILE_SIZE
    sent = {
        "title": title,
        "tags": parse_tags(tags) if tags is not None else None,
        "read_time": read_time,
        "views": views,
        "likes": likes,
    }
    changes = _validated(BlogChanges, {name: value for name, value in sent.items() if value is not None})
    content_file = await read_upload(content, "content", max_size)
    cover_file = await read_upload(cover, "cover", max_size)

    blog = await blogs.update(blog_id, changes, content_file, cover_file)
    return ApiResponse(data=blog, message="Blog updated successfully")


@router.delete(
    "/{blog_id}",
    response_model=ApiResponse[None],
    summary="Soft delete blog",
    dependencies=ADMIN_DELETE,
    responses=ERROR_RESPONSES | AUTH_RESPONSES | NOT_FOUND_RESPONSE,
    operation_id="blogs_soft_delete",
)
async def delete_blog(blogs: BlogServiceDep, blog_id: BlogId) -> ApiResponse[None]:
    """Hide a blog from every read path; its content and cover are kept."""
    await blogs.soft_delete(blog_id)
    return ApiResponse(message="Blog deleted successfully")


@router.delete(
    "/{blog_id}/permanent",
    response_model=ApiResponse[None],
    summary="Permanently delete blog",
    dependencies=ADMIN_DELETE,
    responses=ERROR_RESPONSES | AUTH_RESPONSES | NOT_FOUND_RESPONSE,
    operation_id="blogs_permanent_delete",
)
async def permanently_delete_blog(blogs: BlogServiceDep, blog_id: BlogId) -> ApiResponse[None]:
    """Remove a blog's blobs and then its row. Works on soft-deleted blogs too."""
    removed = await blogs.hard_delete(blog_id)
    return ApiResponse(message=f"Blog permanently deleted ({removed} file(s) removed)")
