"""HTTP byte-range handling for streamed reads.

Only a single range is honoured. A malformed header, a multi-range
request or a reversed range is ignored and the full body is served, as
RFC 9110 allows.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from tempshare.shared.errors import RangeNotSatisfiableError
from tempshare.shared.types import ByteRange

# Offsets beyond 19 digits exceed any object size; such headers are ignored.
_RANGE_RE = re.compile(r"bytes=([0-9]{0,19})-([0-9]{0,19})")


@dataclass(frozen=True)
class RangeSpec:
    """A parsed, not yet resolved range.

    ``start=None`` means a suffix range: the last ``end`` bytes.
    ``end=None`` means from ``start`` to the end of the object.
    """

    start: int | None
    end: int | None

    def resolve(self, total_length: int) -> ByteRange:
        """Clamp against the object length.

        Raises:
            RangeNotSatisfiableError: the range starts past the end of the
                object, or asks for an empty suffix.
        """
        if self.start is None:
            suffix = self.end or 0
            if suffix == 0 or total_length == 0:
                raise RangeNotSatisfiableError(total_length)
            return ByteRange(start=max(0, total_length - suffix), end=total_length - 1)

        if self.start >= total_length:
            raise RangeNotSatisfiableError(total_length)
        last = total_length - 1
        end = last if self.end is None else min(self.end, last)
        return ByteRange(start=self.start, end=end)


def parse_range_header(value: str | None) -> RangeSpec | None:
    """Parse a ``Range`` header value such as ``bytes=0-499``."""
    if not value:
        return None
    match = _RANGE_RE.fullmatch(value.strip())
    if match is None:
        return None

    first, last = match.groups()
    if not first and not last:
        return None
    if not first:
        return RangeSpec(start=None, end=int(last))

    start = int(first)
    end = int(last) if last else None
    if end is not None and end < start:
        return None
    return RangeSpec(start=start, end=end)
