from app.schemas.blog import (
    BlogChanges,
    BlogContentResponse,
    BlogDraft,
    BlogPage,
    BlogResponse,
    ContentBody,
    Pagination,
    UploadedFile,
)
from app.schemas.response import ApiResponse, HealthResponse, HealthServices

__all__ = [
    "ApiResponse",
    "BlogChanges",
    "BlogContentResponse",
    "BlogDraft",
    "BlogPage",
    "BlogResponse",
    "ContentBody",
    "HealthResponse",
    "HealthServices",
    "Pagination",
    "UploadedFile",
]
