"""Deterministic clock and entropy for placement, service and sweeper tests."""

from __future__ import annotations

from datetime import UTC, datetime

# 2024-06-10 08:20:00 UTC; the next bucket boundary is 09:00 (1718010000).
FIXED_NOW = datetime(2024, 6, 10, 8, 20, tzinfo=UTC)


class FakeClock:
    """Settable clock."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class SequenceEntropy:
    """rand_a counts up from 1, rand_b is fixed."""

    def __init__(self) -> None:
        self.calls = 0

    def mint(self, unix_ms: int) -> tuple[int, int]:
        self.calls += 1
        return self.calls, 0x2A
