# app/routes/blob.py

"""
Presigned blob delivery for the local blob store.

URLs issued by ``TokenUrlSigner`` point here; the token is checked against
the requested key and its expiry before any bytes are read. With the S3
provider the bucket serves presigned URLs itself and this route answers 404.
"""

from mimetypes import guess_type
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from starlette.responses import Response

from app.dependencies import ContextDep, rate_limit
from app.errors import BlobNotFoundError
from app.managers.rate_limiter import RateLimitDecision, Tier
from app.managers.url_signer import TokenUrlSigner

router = APIRouter(prefix="/blobs", tags=["🗂️ Blobs"])


@router.get(
    "/{key:path}",
    summary="Read a blob through a presigned URL",
    response_class=Response,
    responses={
        200: {"content": {"image/*": {}, "text/html": {}}},
        403: {"description": "Link is invalid or has expired"},
        404: {"description": "Blob not found"},
    },
    operation_id="blobs_get",
)
async def read_blob(
    context: ContextDep,
    key: str,
    token: Annotated[str, Query(min_length=1, description="Signed access token")],
    decision: Annotated[RateLimitDecision | None, Depends(rate_limit(Tier.PUBLIC_READ))],
) -> Response:
    signer = context.signer
    if not isinstance(signer, TokenUrlSigner):
        raise BlobNotFoundError(key)
    signer.verify(key, token)

    data = await context.blobs.get(key)
    media_type, _ = guess_type(key)
    headers = {"Cache-Control": "private, max-age=300"}
    if decision is not None:
        headers.update(decision.headers())
    return Response(data, media_type=media_type or "application/octet-stream", headers=headers)
