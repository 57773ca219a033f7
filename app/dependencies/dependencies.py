# app/dependencies/dependencies.py

"""Request dependencies: service context, access gate and rate limiting."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Query, Request, Response, Security
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer
from starlette.datastructures import UploadFile

from app.auth import API_KEY_HEADER, extract_credential
from app.configs.settings import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from app.context import ServiceContext
from app.errors import PayloadTooLargeError
from app.managers.rate_limiter import RateLimitDecision, Tier, client_identity
from app.schemas.blog import UploadedFile
from app.services.blog import BlogService
from app.utils.helpers import split_csv

api_key_header = APIKeyHeader(
    name=API_KEY_HEADER,
    auto_error=False,
    description="Admin API key",
)
bearer_scheme = HTTPBearer(auto_error=False, description="Admin API key as a Bearer token")


def get_context(request: Request) -> ServiceContext:
    """Resolve the service context built at startup."""
    return request.app.state.context


ContextDep = Annotated[ServiceContext, Depends(get_context)]


def get_blog_service(context: ContextDep) -> BlogService:
    return context.blogs


BlogServiceDep = Annotated[BlogService, Depends(get_blog_service)]


def get_credential(
    api_key: Annotated[str | None, Security(api_key_header)],
    bearer: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
) -> str | None:
    return extract_credential(api_key, bearer)


CredentialDep = Annotated[str | None, Depends(get_credential)]


def require_api_key(context: ContextDep, credential: CredentialDep) -> str:
    """
    Gate a protected route.

    Raises:
        AuthError: 401 when no credential is sent, 403 when it does not match
        AccessGateConfigurationError: When no admin key is configured
    """
    context.gate.authenticate(credential)
    return credential or ""


def rate_limit(tier: Tier) -> Callable[..., Awaitable[RateLimitDecision | None]]:
    """
    Create a dependency that counts the request against ``tier``.

    Successful responses carry ``RateLimit-*`` headers; exhausted quotas raise
    ``RateLimitError`` (429 with ``Retry-After``).

    Example:
        @router.get("/blogs", dependencies=[Depends(rate_limit(Tier.PUBLIC_READ))])
    """

    async def dependency(
        request: Request,
        response: Response,
        context: ContextDep,
        credential: CredentialDep,
    ) -> RateLimitDecision | None:
        limiter = context.rate_limiter
        if not limiter.enabled:
            return None
        decision = await limiter.hit(tier, client_identity(request, tier, credential))
        response.headers.update(decision.headers())
        return decision

    dependency.__name__ = f"rate_limit_{tier.name.lower()}"
    return dependency


@dataclass(frozen=True)
class BlogListQuery:
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE
    tags: list[str] | None = None
    search: str | None = None


def get_blog_list_query(
    page: Annotated[int, Query(ge=1, description="1-based page number")] = 1,
    limit: Annotated[
        int,
        Query(ge=1, le=MAX_PAGE_SIZE, description="Page size"),
    ] = DEFAULT_PAGE_SIZE,
    tags: Annotated[str | None, Query(description="Comma separated tags; all must match")] = None,
    search: Annotated[str | None, Query(max_length=200, description="Full-text query")] = None,
) -> BlogListQuery:
    return BlogListQuery(page=page, limit=limit, tags=split_csv(tags), search=search)


BlogListQueryDep = Annotated[BlogListQuery, Depends(get_blog_list_query)]


async def read_upload(upload: UploadFile | None, field: str, limit: int) -> UploadedFile | None:
    """
    Read a multipart file part into memory, enforcing the size cap.

    An empty part without a filename (an unselected file input) counts as absent.

    Raises:
        PayloadTooLargeError: If the part exceeds ``limit`` bytes
    """
    if upload is None:
        return None
    data = await upload.read(limit + 1)
    await upload.close()
    if len(data) > limit:
        raise PayloadTooLargeError(field, limit)
    if not data and not upload.filename:
        return None
    return UploadedFile(data=data, content_type=upload.content_type, filename=upload.filename)
