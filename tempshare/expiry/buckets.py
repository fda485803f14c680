"""Bucket directory scheme.

Objects are grouped into one top-level directory per hour of expiry.
The directory name is the decimal unix-seconds value of the hour
boundary at or after the object's expiration (ceiling), so a bucket is
never older than anything inside it and the sweep reclaims an object at
most one bucket width after it expires.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta

from tempshare.expiry.codec import EPOCH
from tempshare.shared.errors import InvalidBucketKeyError, InvalidExpirationError

BUCKET_WIDTH = timedelta(hours=1)

_BUCKET_KEY_RE = re.compile(r"-?[0-9]+")


def bucket_for(expiration: datetime) -> str:
    """Return the bucket key for an expiration instant.

    Rounds up to the next hour boundary; an instant already on a boundary
    keeps that boundary (10:00:00.000 -> 10:00, 10:00:00.001 -> 11:00).
    """
    if expiration.tzinfo is None or expiration.utcoffset() is None:
        msg = "Expiration must be timezone-aware"
        raise InvalidExpirationError(msg)
    offset = expiration - EPOCH
    # divmod on timedeltas floors, so the remainder is always >= 0
    hours, remainder = divmod(offset, BUCKET_WIDTH)
    if remainder:
        hours += 1
    return str(hours * int(BUCKET_WIDTH.total_seconds()))


def expiration_for(bucket: str) -> datetime:
    """Parse a bucket key back into the instant it expires.

    Raises:
        InvalidBucketKeyError: not an integer, or not a representable instant.
    """
    if not _BUCKET_KEY_RE.fullmatch(bucket):
        raise InvalidBucketKeyError(bucket)
    try:
        return EPOCH + timedelta(seconds=int(bucket))
    except OverflowError:
        raise InvalidBucketKeyError(bucket) from None


def object_path(bucket: str, name: str, part: int | None = None) -> str:
    """Storage path of an object: ``bucket/name`` or ``bucket/name/part``."""
    if part is None:
        return f"{bucket}/{name}"
    return f"{bucket}/{name}/{part}"


def part_dir(bucket: str, name: str) -> str:
    """Directory holding the numbered parts of a chunked upload."""
    return f"{bucket}/{name}/"
