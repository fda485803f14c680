"""ObjectStoragePort - Object storage operations interface.

Encapsulates object storage primitives without any placement or expiry
logic. Paths are "/"-separated and relative to the storage root; a
trailing "/" names a directory.

Underlying implementation: S3 / MinIO or the local filesystem (swappable).

There is deliberately no single-object delete: expired content is only
ever reclaimed through remove_all on a whole bucket directory.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from tempshare.shared.types import ObjectMetadata


class ObjectWriter(ABC):
    """Streaming writer returned by ObjectStoragePort.open_writer.

    Chunks are buffered up to the writer's buffer size before being sent
    to the backend. close() flushes and commits whatever was written and
    must be called exactly once, also after a failed write.
    """

    @abstractmethod
    async def write(self, chunk: bytes) -> None:
        """Append a chunk to the object."""

    @abstractmethod
    async def close(self) -> None:
        """Flush buffered data and commit the object."""


class ObjectStoragePort(ABC):
    """Port: Object storage operation primitives.

    7 methods:
    - open_writer
    - stat
    - read
    - list_dir
    - create_dir
    - exists
    - remove_all

    Implementations raise ObjectNotFoundError for absent paths and
    StorageError for every other backend fault.
    """

    @abstractmethod
    async def open_writer(
        self,
        path: str,
        *,
        buffer_size: int,
        concurrency: int,
    ) -> ObjectWriter:
        """Open a streaming writer for an object.

        Args:
            path: Object path (e.g. "1718002800/<uuid>.mp4").
            buffer_size: Bytes buffered before a chunk is sent upstream.
            concurrency: Maximum in-flight chunk uploads.

        Returns:
            ObjectWriter that must be closed by the caller.
        """

    @abstractmethod
    async def stat(self, path: str) -> ObjectMetadata:
        """Retrieve object metadata without reading the object.

        Args:
            path: Object or directory path.

        Returns:
            ObjectMetadata with content_length and is_dir.
        """

    @abstractmethod
    def read(
        self,
        path: str,
        start: int = 0,
        end: int | None = None,
    ) -> AsyncIterator[bytes]:
        """Stream an object's bytes.

        Args:
            path: Object path.
            start: First byte offset.
            end: Last byte offset, inclusive. None reads to the end.

        Returns:
            Async iterator of chunks; the first iteration opens the reader.
        """

    @abstractmethod
    async def list_dir(self, path: str) -> list[ObjectMetadata]:
        """List the direct children of a directory (non-recursive).

        Args:
            path: Directory path; "" is the storage root.

        Returns:
            Entries with is_dir set for sub-directories. A missing
            directory lists as empty.
        """

    @abstractmethod
    async def create_dir(self, path: str) -> None:
        """Create a directory (and its parents)."""

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Return whether an object or directory exists."""

    @abstractmethod
    async def remove_all(self, path: str) -> None:
        """Recursively delete a directory and everything below it.

        Removing a directory that does not exist is a no-op.
        """
