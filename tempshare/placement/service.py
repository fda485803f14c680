"""File share service: the seam between the HTTP gateway and placement.

Upload intake hands over a retention choice, an original file name and
a byte stream and gets back a ``<uuid>.<ext>`` reference. Retrieval
hands over that reference (and optionally a Range header) and gets back
a stream. No state is kept here between calls.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from tempshare.expiry.codec import FileReference, extension_of, parse_reference
from tempshare.expiry.retention import expiration_after
from tempshare.placement.objects import guess_media_type
from tempshare.placement.ranges import parse_range_header
from tempshare.shared.errors import InvalidPartError, NotFoundError
from tempshare.shared.types import ChunkedUpload, FileInfo, UploadReceipt

if TYPE_CHECKING:
    from collections.abc import AsyncIterable

    from tempshare.expiry.codec import EntropySource
    from tempshare.placement.objects import ObjectPlacement
    from tempshare.shared.types import ObjectStream

logger = logging.getLogger(__name__)

DEFAULT_MAX_PARTS = 10_000


class FileShareService:
    """Upload, chunked upload, retrieval and description of shared files."""

    def __init__(
        self,
        placement: ObjectPlacement,
        *,
        max_parts: int = DEFAULT_MAX_PARTS,
        entropy: EntropySource | None = None,
    ) -> None:
        self._placement = placement
        self._max_parts = max_parts
        self._entropy = entropy

    @property
    def max_parts(self) -> int:
        return self._max_parts

    def _mint(self, share_for: str | None, filename: str | None) -> FileReference:
        extension = extension_of(filename)
        expiration = expiration_after(share_for, self._placement.now())
        return FileReference.mint(expiration, extension, entropy=self._entropy)

    async def upload(
        self,
        share_for: str | None,
        filename: str | None,
        content: AsyncIterable[bytes],
    ) -> UploadReceipt:
        """Store a whole file in one stream."""
        reference = self._mint(share_for, filename)
        # Place by the decoded (millisecond) instant so reads land on the same bucket.
        expiration = reference.expiration
        await self._placement.put(reference, expiration, content)
        logger.info("Uploaded '%s', expires %s", reference.name, expiration.isoformat())
        return UploadReceipt(reference=reference.name, expires_at=expiration)

    async def begin_chunked(
        self,
        share_for: str | None,
        filename: str | None,
        parts: int,
    ) -> ChunkedUpload:
        """Mint a reference and prepare the directory for its parts."""
        reference = self._mint(share_for, filename)
        expiration = reference.expiration
        count = min(max(parts, 1), self._max_parts)
        await self._placement.create_part_dir(reference, expiration, count)
        logger.info("Started chunked upload '%s' with %d parts", reference.name, count)
        return ChunkedUpload(reference=reference.name, expires_at=expiration, parts=count)

    async def upload_part(
        self,
        reference: str,
        part: int,
        content: AsyncIterable[bytes],
    ) -> int:
        """Write one numbered part of a chunked upload.

        Raises:
            InvalidPartError: part index outside the count declared by
                begin_chunked (or outside ``0..max_parts-1``).
            NotFoundError: the reference expired or was never started.
        """
        ref = parse_reference(reference)
        expiration = ref.expiration
        if not 0 <= part < self._max_parts:
            raise InvalidPartError(part, self._max_parts)
        if self._placement.now() >= expiration:
            raise NotFoundError(ref.name)
        declared = await self._placement.declared_parts(ref, expiration)
        if declared is None:
            raise NotFoundError(ref.name)
        if part >= declared:
            raise InvalidPartError(part, declared)

        logger.info("Writing part %d of '%s'", part, ref.name)
        written = await self._placement.put(ref, expiration, content, part=part)
        logger.info("Finished upload with part %d of '%s'", part, ref.name)
        return written

    async def open(self, reference: str, range_header: str | None = None) -> ObjectStream:
        """Open a (possibly ranged) stream over a shared file."""
        ref = parse_reference(reference)
        return await self._placement.get(ref, ref.expiration, parse_range_header(range_header))

    async def describe(self, reference: str) -> FileInfo:
        ref = parse_reference(reference)
        expiration = ref.expiration
        exists = await self._placement.exists(ref, expiration)
        expires_in = max(expiration - self._placement.now(), timedelta(0))
        return FileInfo(
            reference=ref.name,
            exists=exists,
            expires_at=expiration,
            expires_in=expires_in,
            media_type=guess_media_type(ref.extension),
        )
