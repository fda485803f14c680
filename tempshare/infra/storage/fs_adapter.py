"""Local filesystem adapter implementing ObjectStoragePort.

Stores objects below a root directory, one sub-directory per bucket.
Used for development and tests; production runs against S3/MinIO.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import stat as stat_mode
from pathlib import Path
from typing import TYPE_CHECKING, Any

import aiofiles
import aiofiles.os

from tempshare.ports.object_storage_port import ObjectStoragePort, ObjectWriter
from tempshare.shared.errors import ObjectNotFoundError, StorageError
from tempshare.shared.types import ObjectMetadata

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)

DEFAULT_READ_CHUNK_SIZE = 64 * 1024

_MISSING = (FileNotFoundError, NotADirectoryError)


class _FileWriter(ObjectWriter):
    """Buffered writer over an aiofiles handle."""

    def __init__(self, handle: Any, path: str, buffer_size: int) -> None:
        self._handle = handle
        self._path = path
        self._buffer_size = max(buffer_size, 1)
        self._buffer = bytearray()
        self._closed = False

    async def write(self, chunk: bytes) -> None:
        if self._closed:
            raise StorageError("write", self._path, message=f"Writer for '{self._path}' is closed")
        self._buffer.extend(chunk)
        if len(self._buffer) >= self._buffer_size:
            await self._flush()

    async def _flush(self) -> None:
        if not self._buffer:
            return
        try:
            await self._handle.write(bytes(self._buffer))
        except OSError as exc:
            raise StorageError("write", self._path) from exc
        self._buffer.clear()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._flush()
        finally:
            try:
                await self._handle.close()
            except OSError as exc:
                raise StorageError("close", self._path) from exc


class FilesystemAdapter(ObjectStoragePort):
    """ObjectStoragePort implementation on a local directory tree."""

    def __init__(
        self,
        root: str | Path = "var/storage",
        *,
        read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
    ) -> None:
        self._root = Path(root).resolve()
        self._read_chunk_size = read_chunk_size

    @property
    def root(self) -> Path:
        return self._root

    def connect(self) -> None:
        """Create the storage root if needed."""
        self._root.mkdir(parents=True, exist_ok=True)
        logger.info("Filesystem storage ready: %s", self._root)

    def _resolve(self, path: str) -> Path:
        relative = path.strip("/")
        target = (self._root / relative).resolve() if relative else self._root
        if target != self._root and self._root not in target.parents:
            raise StorageError("resolve", path, message=f"Path escapes storage root: {path}")
        return target

    async def open_writer(
        self,
        path: str,
        *,
        buffer_size: int,
        concurrency: int,
    ) -> ObjectWriter:
        """Open a buffered file writer; concurrency has no meaning locally."""
        target = self._resolve(path)
        try:
            await aiofiles.os.makedirs(target.parent, exist_ok=True)
            handle = await aiofiles.open(target, "wb")
        except OSError as exc:
            raise StorageError("open_writer", path) from exc
        return _FileWriter(handle, path, buffer_size)

    async def stat(self, path: str) -> ObjectMetadata:
        target = self._resolve(path)
        try:
            st = await aiofiles.os.stat(target)
        except _MISSING as exc:
            raise ObjectNotFoundError("stat", path) from exc
        except OSError as exc:
            raise StorageError("stat", path) from exc

        if stat_mode.S_ISDIR(st.st_mode):
            return ObjectMetadata(path=path.rstrip("/") + "/", is_dir=True)
        return ObjectMetadata(path=path, content_length=st.st_size)

    async def read(
        self,
        path: str,
        start: int = 0,
        end: int | None = None,
    ) -> AsyncIterator[bytes]:
        target = self._resolve(path)
        try:
            handle = await aiofiles.open(target, "rb")
        except (*_MISSING, IsADirectoryError) as exc:
            raise ObjectNotFoundError("read", path) from exc
        except OSError as exc:
            raise StorageError("read", path) from exc

        try:
            await handle.seek(start)
            remaining = None if end is None else end - start + 1
            while remaining is None or remaining > 0:
                size = self._read_chunk_size
                if remaining is not None:
                    size = min(size, remaining)
                chunk = await handle.read(size)
                if not chunk:
                    break
                if remaining is not None:
                    remaining -= len(chunk)
                yield chunk
        except OSError as exc:
            raise StorageError("read", path) from exc
        finally:
            await handle.close()

    async def list_dir(self, path: str) -> list[ObjectMetadata]:
        target = self._resolve(path)
        try:
            names = await aiofiles.os.listdir(target)
        except _MISSING:
            return []
        except OSError as exc:
            raise StorageError("list", path) from exc

        prefix = path.strip("/")
        entries: list[ObjectMetadata] = []
        for name in sorted(names):
            try:
                st = await aiofiles.os.stat(target / name)
            except FileNotFoundError:
                # removed while listing
                continue
            except OSError as exc:
                raise StorageError("list", path) from exc
            relative = f"{prefix}/{name}" if prefix else name
            if stat_mode.S_ISDIR(st.st_mode):
                entries.append(ObjectMetadata(path=f"{relative}/", is_dir=True))
            else:
                entries.append(ObjectMetadata(path=relative, content_length=st.st_size))
        return entries

    async def create_dir(self, path: str) -> None:
        target = self._resolve(path)
        try:
            await aiofiles.os.makedirs(target, exist_ok=True)
        except OSError as exc:
            raise StorageError("create_dir", path) from exc

    async def exists(self, path: str) -> bool:
        target = self._resolve(path)
        return await aiofiles.os.path.exists(target)

    async def remove_all(self, path: str) -> None:
        target = self._resolve(path)
        if target == self._root:
            raise StorageError("remove_all", path, message="Refusing to remove the storage root")
        try:
            await asyncio.to_thread(shutil.rmtree, target)
        except FileNotFoundError:
            return
        except OSError as exc:
            raise StorageError("remove_all", path) from exc
