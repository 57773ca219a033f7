# app/dependencies/__init__.py

from app.dependencies.dependencies import (
    BlogListQuery,
    BlogListQueryDep,
    BlogServiceDep,
    ContextDep,
    CredentialDep,
    get_blog_service,
    get_context,
    rate_limit,
    read_upload,
    require_api_key,
)

__all__ = [
    "BlogListQuery",
    "BlogListQueryDep",
    "BlogServiceDep",
    "ContextDep",
    "CredentialDep",
    "get_blog_service",
    "get_context",
    "rate_limit",
    "read_upload",
    "require_api_key",
]
