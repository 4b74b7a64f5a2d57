"""Upload size enforcement."""
from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass

from fastapi import HTTPException, UploadFile

from kosmoguard.core.config import settings

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 8192


@dataclass(frozen=True)
class UploadDigest:
    filename: str | None
    content_type: str | None
    size: int
    sha256: str


def _too_large() -> HTTPException:
    return HTTPException(
        status_code=413,
        detail=f"File too large. Maximum size: {settings.app.max_upload_size_mb}MB",
    )


async def digest_upload_limited(file: UploadFile) -> UploadDigest:
    """Stream an upload, enforcing the size limit, and return its digest.

    The declared multipart size is checked first; the chunked read enforces
    the limit again for clients that lie about or omit it.

    Raises:
        HTTPException: 413 if the file exceeds ``APP_MAX_UPLOAD_SIZE_MB``.
    """
    max_bytes = settings.app.max_upload_size_mb * 1024 * 1024

    declared = getattr(file, "size", None)
    if declared is not None and declared > max_bytes:
        logger.warning(
            "file_validation.rejected_by_header",
            extra={"file_size": declared, "max_bytes": max_bytes},
        )
        raise _too_large()

    hasher = hashlib.sha256()
    size = 0
    while chunk := await file.read(_CHUNK_SIZE):
        size += len(chunk)
        if size > max_bytes:
            logger.warning(
                "file_validation.rejected_by_chunked_read",
                extra={"size": size, "max_bytes": max_bytes},
            )
            raise _too_large()
        hasher.update(chunk)

    return UploadDigest(
        filename=file.filename,
        content_type=file.content_type,
        size=size,
        sha256=hasher.hexdigest(),
    )
