"""Shared Fake adapters for testing without unittest.mock.

All Fake implementations follow the Port DI adapter pattern:
real Python classes with preset behaviour, no AsyncMock/MagicMock.
"""

from tests.fakes.clock import FIXED_NOW, FakeClock, SequenceEntropy
from tests.fakes.storage import FakeObjectStorage, FakeWriter, chunks_of

__all__ = [
    "FIXED_NOW",
    "FakeClock",
    "FakeObjectStorage",
    "FakeWriter",
    "SequenceEntropy",
    "chunks_of",
]
