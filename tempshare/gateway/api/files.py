"""File sharing API.

- GET  /api/v1/files/options                    -> retention menu
- POST /api/v1/files                            -> single-part upload (multipart form)
- POST /api/v1/files/chunked                    -> start a chunked upload
- PUT  /api/v1/files/{reference}/parts/{part}   -> upload one part (raw body)
- GET  /api/v1/files/{reference}                -> download, honours Range
- GET  /api/v1/files/{reference}/info           -> expiry and availability

References are ``<uuid>.<ext>`` where the UUIDv7 timestamp is the
expiration instant, so none of these routes needs a lookup table.
"""

from __future__ import annotations

import logging
from datetime import datetime  # noqa: TC003 -- pydantic resolves it at runtime
from typing import TYPE_CHECKING

from fastapi import APIRouter, File, Form, Request, UploadFile
from fastapi.responses import Response, StreamingResponse
from pydantic import BaseModel, field_validator

from tempshare.expiry.retention import DEFAULT_SHARE_FOR, SHARE_FOR_OPTIONS, format_duration
from tempshare.shared.errors import MissingFieldError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from tempshare.placement.service import FileShareService

logger = logging.getLogger(__name__)

UPLOAD_READ_SIZE = 1024 * 1024


class RetentionOptionsResponse(BaseModel):
    """Retention choices offered to uploaders, shortest first."""

    options: list[str]
    default: str


class UploadResponse(BaseModel):
    reference: str
    expires_at: datetime
    url: str


class ChunkedUploadRequest(BaseModel):
    """Start a chunked upload; parts are then PUT individually."""

    share_for: str | None = None
    filename: str
    parts: int = 1

    @field_validator("filename")
    @classmethod
    def validate_filename(cls, v: str) -> str:
        if not v or not v.strip():
            msg = "Filename cannot be empty"
            raise ValueError(msg)
        return v.strip()


class ChunkedUploadResponse(BaseModel):
    reference: str
    expires_at: datetime
    parts: int
    part_urls: list[str]


class FileInfoResponse(BaseModel):
    """Availability and remaining lifetime of a shared file."""

    reference: str
    exists: bool
    expires_at: datetime
    expires_in_seconds: int
    expires_in: str
    media_type: str
    url: str


async def _iter_upload(file: UploadFile) -> AsyncIterator[bytes]:
    while chunk := await file.read(UPLOAD_READ_SIZE):
        yield chunk


def create_files_router(service: FileShareService) -> APIRouter:
    """Create the file sharing API router."""
    router = APIRouter(prefix="/api/v1/files", tags=["files"])

    def _file_url(reference: str) -> str:
        return f"{router.prefix}/{reference}"

    @router.get("/options", response_model=RetentionOptionsResponse)
    async def list_options() -> RetentionOptionsResponse:
        return RetentionOptionsResponse(options=list(SHARE_FOR_OPTIONS), default=DEFAULT_SHARE_FOR)

    @router.post("", response_model=UploadResponse, status_code=201)
    async def upload_file(
        share_for: str | None = Form(None),
        file: UploadFile | None = File(None),
    ) -> UploadResponse:
        """Upload a whole file in one request."""
        if share_for is None:
            raise MissingFieldError("share_for")
        if file is None:
            raise MissingFieldError("file")

        try:
            receipt = await service.upload(share_for, file.filename, _iter_upload(file))
        finally:
            await file.close()

        return UploadResponse(
            reference=receipt.reference,
            expires_at=receipt.expires_at,
            url=_file_url(receipt.reference),
        )

    @router.post("/chunked", response_model=ChunkedUploadResponse, status_code=201)
    async def begin_chunked_upload(body: ChunkedUploadRequest) -> ChunkedUploadResponse:
        """Reserve a reference for a file uploaded as numbered parts."""
        upload = await service.begin_chunked(body.share_for, body.filename, body.parts)
        base = _file_url(upload.reference)
        return ChunkedUploadResponse(
            reference=upload.reference,
            expires_at=upload.expires_at,
            parts=upload.parts,
            part_urls=[f"{base}/parts/{part}" for part in range(upload.parts)],
        )

    @router.put("/{reference}/parts/{part}", status_code=204)
    async def upload_part(reference: str, part: int, request: Request) -> Response:
        """Stream the request body into one part of a chunked upload."""
        await service.upload_part(reference, part, request.stream())
        return Response(status_code=204)

    @router.get("/{reference}/info", response_model=FileInfoResponse)
    async def file_info(reference: str) -> FileInfoResponse:
        info = await service.describe(reference)
        return FileInfoResponse(
            reference=info.reference,
            exists=info.exists,
            expires_at=info.expires_at,
            expires_in_seconds=int(info.expires_in.total_seconds()),
            expires_in=format_duration(info.expires_in),
            media_type=info.media_type,
            url=_file_url(info.reference),
        )

    @router.get("/{reference}")
    async def download_file(reference: str, request: Request) -> StreamingResponse:
        """Stream a shared file; a single byte range yields 206."""
        stream = await service.open(reference, request.headers.get("range"))

        headers = {
            "Accept-Ranges": "bytes",
            "Content-Length": str(stream.content_length),
        }
        status_code = 200
        if stream.byte_range is not None:
            status_code = 206
            headers["Content-Range"] = stream.byte_range.content_range(stream.total_length)

        return StreamingResponse(
            stream.chunks,
            status_code=status_code,
            media_type=stream.media_type,
            headers=headers,
        )

    return router
