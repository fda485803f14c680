"""Expiration codec: the identifier is the expiration record.

Every shared file is named by a version 7 UUID whose 48-bit millisecond
timestamp is the file's *expiration* instant, chosen at upload time.
Because the identifier carries its own expiry, neither reads nor the
sweep need a metadata store.

UUIDv7 layout (RFC 9562)::

    unix_ts_ms (48) | ver=0b0111 (4) | rand_a (12) | var=0b10 (2) | rand_b (62)
"""

from __future__ import annotations

import re
import secrets
import threading
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol

from tempshare.shared.errors import (
    InvalidExpirationError,
    InvalidFileNameError,
    InvalidUUIDTimestampError,
    InvalidUUIDVersionError,
    MissingFileNameError,
    UnknownFileTypeError,
)

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

_UNIX_MS_LIMIT = 1 << 48
_RAND_A_MAX = (1 << 12) - 1
_EXTENSION_RE = re.compile(r"[A-Za-z0-9]{1,16}")


class EntropySource(Protocol):
    """Mints the non-timestamp bits of an identifier.

    Injected into encode_id so tests can supply deterministic bits.
    """

    def mint(self, unix_ms: int) -> tuple[int, int]:
        """Return (rand_a, rand_b): 12 and 62 bits for the given millisecond."""
        ...


class RandomEntropy:
    """Fresh random bits on every call, no ordering within a millisecond."""

    def mint(self, unix_ms: int) -> tuple[int, int]:
        return secrets.randbits(12), secrets.randbits(62)


class MonotonicEntropy:
    """Counter-in-rand_a entropy, monotonic within one millisecond.

    The counter is seeded from 11 random bits on each new millisecond so
    there is headroom for at least 2048 increments. If it still runs out
    it is reseeded; rand_b stays random so identifiers remain unique.
    Thread-safe.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last_ms = -1
        self._counter = 0

    def mint(self, unix_ms: int) -> tuple[int, int]:
        with self._lock:
            if unix_ms == self._last_ms and self._counter < _RAND_A_MAX:
                self._counter += 1
            else:
                self._last_ms = unix_ms
                self._counter = secrets.randbits(11)
            return self._counter, secrets.randbits(62)


_default_entropy = MonotonicEntropy()


def to_unix_ms(instant: datetime) -> int:
    """Convert an aware datetime to whole unix milliseconds (floored)."""
    if instant.tzinfo is None or instant.utcoffset() is None:
        msg = "Expiration must be timezone-aware"
        raise InvalidExpirationError(msg)
    return (instant - EPOCH) // timedelta(milliseconds=1)


def encode_id(expiration: datetime, *, entropy: EntropySource | None = None) -> uuid.UUID:
    """Mint a UUIDv7 whose embedded timestamp is ``expiration``.

    Raises:
        InvalidExpirationError: naive datetime, or an instant outside the
            48-bit millisecond range (before 1970 or after year 10889).
    """
    unix_ms = to_unix_ms(expiration)
    if not 0 <= unix_ms < _UNIX_MS_LIMIT:
        msg = f"Expiration {expiration.isoformat()} cannot be represented in a UUIDv7"
        raise InvalidExpirationError(msg)

    rand_a, rand_b = (entropy or _default_entropy).mint(unix_ms)
    value = (
        (unix_ms << 80)
        | (0x7 << 76)
        | ((rand_a & _RAND_A_MAX) << 64)
        | (0b10 << 62)
        | (rand_b & ((1 << 62) - 1))
    )
    return uuid.UUID(int=value)


def decode_expiration(object_id: uuid.UUID) -> datetime:
    """Extract the expiration instant embedded in a UUIDv7.

    Raises:
        InvalidUUIDVersionError: not an RFC 4122 variant, version 7 UUID.
        InvalidUUIDTimestampError: timestamp beyond what datetime represents.
    """
    if object_id.variant != uuid.RFC_4122 or object_id.version != 7:
        raise InvalidUUIDVersionError
    unix_ms = object_id.int >> 80
    try:
        return EPOCH + timedelta(milliseconds=unix_ms)
    except OverflowError:
        raise InvalidUUIDTimestampError from None


@dataclass(frozen=True)
class FileReference:
    """Public handle of a shared file: ``<uuid>.<ext>``.

    The extension only hints at the MIME type; the UUID alone determines
    where the file lives and when it expires.
    """

    object_id: uuid.UUID
    extension: str

    @classmethod
    def mint(
        cls,
        expiration: datetime,
        extension: str,
        *,
        entropy: EntropySource | None = None,
    ) -> FileReference:
        return cls(object_id=encode_id(expiration, entropy=entropy), extension=extension)

    @property
    def name(self) -> str:
        return f"{self.object_id}.{self.extension}"

    @property
    def expiration(self) -> datetime:
        return decode_expiration(self.object_id)

    def __str__(self) -> str:
        return self.name


def parse_reference(name: str) -> FileReference:
    """Parse a ``<uuid>.<ext>`` reference, canonicalising the UUID.

    Raises:
        InvalidFileNameError: no extension, a stem that is not a UUID, or
            an extension that is not 1-16 ASCII alphanumerics.
    """
    stem, dot, extension = name.rpartition(".")
    if not dot or not _EXTENSION_RE.fullmatch(extension):
        raise InvalidFileNameError(name)
    try:
        object_id = uuid.UUID(stem)
    except ValueError:
        raise InvalidFileNameError(name) from None
    return FileReference(object_id=object_id, extension=extension)


def extension_of(filename: str | None) -> str:
    """Extract the extension of an uploaded file's original name.

    Only the last path segment is considered; dotfiles without a further
    extension (".bashrc") have none.

    Raises:
        MissingFileNameError: empty or missing name.
        UnknownFileTypeError: no extension, or one that is unsafe in a path.
    """
    if not filename or not filename.strip():
        raise MissingFileNameError
    base = filename.strip().replace("\\", "/").rsplit("/", 1)[-1]
    stem, dot, extension = base.rpartition(".")
    if not dot or not stem or not _EXTENSION_RE.fullmatch(extension):
        raise UnknownFileTypeError(filename)
    return extension
