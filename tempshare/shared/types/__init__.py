"""Shared domain types used across layers.

These types flow through the storage port and the file share service
and must remain stable. None of them is ever persisted: placement is a
pure function of the reference, so the only durable state is the bytes
held by the storage backend.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from datetime import datetime, timedelta

# -- Storage port types --


@dataclass(frozen=True)
class ObjectMetadata:
    """Result of a stat or directory listing entry."""

    path: str
    content_length: int = 0
    is_dir: bool = False

    @property
    def name(self) -> str:
        """Last path segment, without a trailing slash."""
        return self.path.rstrip("/").rsplit("/", 1)[-1]


# -- Read path types --


@dataclass(frozen=True)
class ByteRange:
    """Resolved, inclusive byte range within an object."""

    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def content_range(self, total_length: int) -> str:
        """Value for the Content-Range response header."""
        return f"bytes {self.start}-{self.end}/{total_length}"


@dataclass
class ObjectStream:
    """A lazy, single-pass byte stream over a stored object.

    ``chunks`` can only be iterated once; re-reading means calling
    ``get`` again.
    """

    chunks: AsyncIterator[bytes]
    total_length: int
    byte_range: ByteRange | None = None
    media_type: str = "application/octet-stream"

    @property
    def content_length(self) -> int:
        if self.byte_range is None:
            return self.total_length
        return self.byte_range.length

    @property
    def is_partial(self) -> bool:
        return self.byte_range is not None


# -- File share service types --


@dataclass(frozen=True)
class UploadReceipt:
    """Outcome of a completed single-part upload."""

    reference: str
    expires_at: datetime


@dataclass(frozen=True)
class ChunkedUpload:
    """Outcome of starting a chunked upload."""

    reference: str
    expires_at: datetime
    parts: int


@dataclass(frozen=True)
class FileInfo:
    """What the retrieval surface needs to render a file page."""

    reference: str
    exists: bool
    expires_at: datetime
    expires_in: timedelta
    media_type: str


# -- Sweep types --


@dataclass
class SweepReport:
    """Per-run summary of the expiry sweep."""

    started_at: datetime
    deleted: list[str] = field(default_factory=list)
    retained: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    def summary(self) -> str:
        return (
            f"deleted={len(self.deleted)} retained={len(self.retained)} "
            f"skipped={len(self.skipped)} failed={len(self.failed)}"
        )
