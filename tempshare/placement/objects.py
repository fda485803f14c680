"""Object placement and streaming I/O.

Where an object lives is a pure function of its reference and expiry::

    <bucket_for(expiration)>/<uuid>.<ext>           single-part upload
    <bucket_for(expiration)>/<uuid>.<ext>/<part>    chunked upload

Writes stream through a bounded backend writer. Reads treat anything
past its expiration as absent, whether or not the sweep has reclaimed
it yet, and return a lazy single-pass stream.
"""

from __future__ import annotations

import logging
import mimetypes
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from tempshare.expiry.buckets import bucket_for, object_path, part_dir
from tempshare.placement.parts import SequentialPartAssembler, encode_manifest, manifest_path, read_manifest
from tempshare.shared.errors import NotFoundError, ObjectNotFoundError
from tempshare.shared.types import ObjectStream

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, AsyncIterator, Callable

    from tempshare.expiry.codec import FileReference
    from tempshare.placement.parts import PartAssembler
    from tempshare.placement.ranges import RangeSpec
    from tempshare.ports.object_storage_port import ObjectStoragePort, ObjectWriter
    from tempshare.shared.types import ByteRange

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 8 * 1024 * 1024
DEFAULT_CONCURRENCY = 4


def utcnow() -> datetime:
    return datetime.now(UTC)


def guess_media_type(extension: str) -> str:
    media_type, _ = mimetypes.guess_type(f"file.{extension}", strict=False)
    return media_type or "application/octet-stream"


class ObjectPlacement:
    """Reads and writes objects at their expiry-derived location."""

    def __init__(
        self,
        storage: ObjectStoragePort,
        *,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        concurrency: int = DEFAULT_CONCURRENCY,
        assembler: PartAssembler | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._storage = storage
        self._buffer_size = buffer_size
        self._concurrency = concurrency
        self._assembler = assembler or SequentialPartAssembler()
        self._clock = clock

    @property
    def storage(self) -> ObjectStoragePort:
        return self._storage

    def now(self) -> datetime:
        return self._clock()

    async def put(
        self,
        reference: FileReference,
        expiration: datetime,
        content: AsyncIterable[bytes],
        part: int | None = None,
    ) -> int:
        """Stream ``content`` into the object's bucket.

        The writer is closed even when the input stream fails or the task
        is cancelled, then the original error propagates. Success is only
        reported when every write and the close succeeded.

        Returns:
            Number of bytes written.
        """
        path = object_path(bucket_for(expiration), reference.name, part)
        return await self._write(path, content)

    async def _write(self, path: str, content: AsyncIterable[bytes]) -> int:
        writer = await self._storage.open_writer(
            path,
            buffer_size=self._buffer_size,
            concurrency=self._concurrency,
        )

        written = 0
        try:
            async for chunk in content:
                if chunk:
                    await writer.write(chunk)
                    written += len(chunk)
        except BaseException:
            await self._close_after_failure(writer, path)
            raise

        await writer.close()
        logger.info("Wrote %d bytes to '%s'", written, path)
        return written

    @staticmethod
    async def _close_after_failure(writer: ObjectWriter, path: str) -> None:
        try:
            await writer.close()
        except Exception as exc:
            logger.warning("Closing writer for '%s' after a failed write also failed: %s", path, exc)

    async def get(
        self,
        reference: FileReference,
        expiration: datetime,
        byte_range: RangeSpec | None = None,
    ) -> ObjectStream:
        """Open a ranged, lazy stream over a stored object.

        Raises:
            NotFoundError: expired, absent, or an incomplete chunked upload.
            RangeNotSatisfiableError: the range lies outside the object.
            StorageError: any other backend fault.
        """
        if self._clock() >= expiration:
            raise NotFoundError(reference.name)

        bucket = bucket_for(expiration)
        path = object_path(bucket, reference.name)
        media_type = guess_media_type(reference.extension)

        try:
            meta = await self._storage.stat(path)
        except ObjectNotFoundError:
            meta = None

        if meta is not None and not meta.is_dir:
            resolved = _resolve(byte_range, meta.content_length)
            start, end = _bounds(resolved)
            return ObjectStream(
                chunks=self._storage.read(path, start, end),
                total_length=meta.content_length,
                byte_range=resolved,
                media_type=media_type,
            )

        try:
            part_set = await self._assembler.assemble(self._storage, part_dir(bucket, reference.name))
        except NotFoundError:
            raise NotFoundError(reference.name) from None

        resolved = _resolve(byte_range, part_set.total_length)
        start, end = _bounds(resolved)
        return ObjectStream(
            chunks=part_set.read(self._storage, start, end),
            total_length=part_set.total_length,
            byte_range=resolved,
            media_type=media_type,
        )

    async def exists(self, reference: FileReference, expiration: datetime) -> bool:
        """Whether ``get`` would currently find a readable object."""
        if self._clock() >= expiration:
            return False

        bucket = bucket_for(expiration)
        try:
            meta = await self._storage.stat(object_path(bucket, reference.name))
        except ObjectNotFoundError:
            meta = None
        if meta is not None and not meta.is_dir:
            return True

        try:
            await self._assembler.assemble(self._storage, part_dir(bucket, reference.name))
        except NotFoundError:
            return False
        return True

    async def create_part_dir(self, reference: FileReference, expiration: datetime, parts: int) -> None:
        """Create the directory for a chunked upload and record its part count."""
        directory = part_dir(bucket_for(expiration), reference.name)
        await self._storage.create_dir(directory)
        await self._write(manifest_path(directory), _single(encode_manifest(parts)))

    async def declared_parts(self, reference: FileReference, expiration: datetime) -> int | None:
        """Part count recorded by create_part_dir, None if it never ran."""
        return await read_manifest(self._storage, part_dir(bucket_for(expiration), reference.name))


async def _single(data: bytes) -> AsyncIterator[bytes]:
    yield data


def _resolve(byte_range: RangeSpec | None, total_length: int) -> ByteRange | None:
    if byte_range is None:
        return None
    return byte_range.resolve(total_length)


def _bounds(resolved: ByteRange | None) -> tuple[int, int | None]:
    if resolved is None:
        return 0, None
    return resolved.start, resolved.end
