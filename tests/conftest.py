"""Root conftest - shared fixtures for all test layers.

Markers:
    @pytest.mark.unit        - No external deps
    @pytest.mark.integration - Needs running services (MinIO/S3, Redis)
"""

from __future__ import annotations

import pytest

from tests.fakes import FakeClock, FakeObjectStorage, SequenceEntropy


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def entropy() -> SequenceEntropy:
    return SequenceEntropy()


@pytest.fixture
def storage() -> FakeObjectStorage:
    return FakeObjectStorage()
