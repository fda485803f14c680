"""Reassembly of chunked uploads.

A chunked upload stores its bytes as numbered sibling objects
``<bucket>/<uuid>.<ext>/0``, ``/1``, ... written independently and in
any order. The part count declared when the upload starts sits next to
them in a ``.parts`` manifest (the decimal count). Turning that
directory back into one logical object is a separate strategy so the
rule can change without touching placement.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from tempshare.shared.errors import NotFoundError, ObjectNotFoundError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from tempshare.ports.object_storage_port import ObjectStoragePort
    from tempshare.shared.types import ObjectMetadata

logger = logging.getLogger(__name__)

MANIFEST_NAME = ".parts"

_PART_NAME_RE = re.compile(r"0|[1-9][0-9]*")
_COUNT_RE = re.compile(r"[1-9][0-9]{0,8}")


def manifest_path(directory: str) -> str:
    return f"{directory.rstrip('/')}/{MANIFEST_NAME}"


def encode_manifest(count: int) -> bytes:
    return str(count).encode("ascii")


async def read_manifest(storage: ObjectStoragePort, directory: str) -> int | None:
    """Declared part count of the upload in ``directory``, or None.

    None covers both a missing manifest (the upload was never started)
    and an unreadable one.
    """
    path = manifest_path(directory)
    try:
        raw = b"".join([chunk async for chunk in storage.read(path)])
    except ObjectNotFoundError:
        return None
    text = raw.decode("ascii", errors="replace").strip()
    if not _COUNT_RE.fullmatch(text):
        logger.warning("Ignoring malformed part manifest '%s': %r", path, raw[:32])
        return None
    return int(text)


@dataclass(frozen=True)
class PartSet:
    """Ordered parts that together form one logical object."""

    parts: tuple[ObjectMetadata, ...]

    @property
    def total_length(self) -> int:
        return sum(part.content_length for part in self.parts)

    async def read(
        self,
        storage: ObjectStoragePort,
        start: int = 0,
        end: int | None = None,
    ) -> AsyncIterator[bytes]:
        """Stream bytes ``start..=end`` of the concatenated parts."""
        last = self.total_length - 1 if end is None else end
        offset = 0
        for part in self.parts:
            part_start = offset
            part_end = offset + part.content_length - 1
            offset += part.content_length
            if part.content_length == 0 or part_end < start:
                continue
            if part_start > last:
                break
            local_start = max(start, part_start) - part_start
            local_end = min(last, part_end) - part_start
            async for chunk in storage.read(part.path, local_start, local_end):
                yield chunk


class PartAssembler(Protocol):
    """Strategy turning a part directory into a PartSet."""

    async def assemble(self, storage: ObjectStoragePort, directory: str) -> PartSet:
        """Raise NotFoundError when the directory holds no readable object."""
        ...


async def _numbered_parts(
    storage: ObjectStoragePort,
    directory: str,
) -> dict[int, ObjectMetadata]:
    entries = await storage.list_dir(directory)
    return {
        int(entry.name): entry
        for entry in entries
        if not entry.is_dir and _PART_NAME_RE.fullmatch(entry.name)
    }


class SequentialPartAssembler:
    """Concatenate parts 0..n-1 where n is the declared count.

    Until every declared part has been written the upload is incomplete
    and reads as absent.
    """

    async def assemble(self, storage: ObjectStoragePort, directory: str) -> PartSet:
        declared = await read_manifest(storage, directory)
        if declared is None:
            raise NotFoundError(directory)

        numbered = await _numbered_parts(storage, directory)
        missing = [index for index in range(declared) if index not in numbered]
        if missing:
            logger.debug("Parts under '%s' incomplete, missing %d of %d", directory, len(missing), declared)
            raise NotFoundError(directory)

        return PartSet(parts=tuple(numbered[index] for index in range(declared)))


class FirstPartAssembler:
    """Serve only part 0, ignoring any later parts and the manifest."""

    async def assemble(self, storage: ObjectStoragePort, directory: str) -> PartSet:
        numbered = await _numbered_parts(storage, directory)
        if 0 not in numbered:
            raise NotFoundError(directory)
        return PartSet(parts=(numbered[0],))
