from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile

from kosmoguard.core.file_validation import digest_upload_limited
from kosmoguard.core.rate_limit import upload_rate_limit
from kosmoguard.schemas.security import RateLimitErrorResponse, UploadResponse

router = APIRouter(tags=["Uploads"])


@router.post(
    "/uploads",
    name="uploads.store",
    response_model=UploadResponse,
    dependencies=[Depends(upload_rate_limit)],
    responses={429: {"model": RateLimitErrorResponse}},
)
async def upload_file(file: UploadFile = File(...)) -> UploadResponse:
    """Accept a file upload.

    Limited to 10 uploads per minute per user (or per hashed IP for
    anonymous callers) and to ``APP_MAX_UPLOAD_SIZE_MB`` per file.
    """
    digest = await digest_upload_limited(file)
    return UploadResponse(
        file_name=digest.filename,
        content_type=digest.content_type,
        size_bytes=digest.size,
        sha256=digest.sha256,
    )
