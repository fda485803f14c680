"""Tests for the in-process periodic sweeper and its metrics."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest
from prometheus_client import REGISTRY

from tempshare.infra.scheduler import PeriodicSweeper, record_report
from tempshare.shared.errors import StorageError
from tempshare.shared.types import SweepReport
from tests.fakes import FakeClock, FakeObjectStorage


def _sample(name: str, **labels: str) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


@pytest.fixture
def seeded(storage: FakeObjectStorage) -> FakeObjectStorage:
    storage.seed(["100/a.txt", "9999999999/b.txt"])
    return storage


@pytest.mark.unit
class TestRunOnce:
    async def test_sweeps_and_records(self, seeded: FakeObjectStorage, clock: FakeClock) -> None:
        before = _sample("tempshare_sweep_runs_total", outcome="ok")
        sweeper = PeriodicSweeper(seeded, clock=clock)

        report = await sweeper.run_once()

        assert report is not None
        assert report.deleted == ["100"]
        assert report.retained == ["9999999999"]
        assert _sample("tempshare_sweep_runs_total", outcome="ok") == before + 1

    async def test_listing_failure_is_contained(self, storage: FakeObjectStorage, clock: FakeClock) -> None:
        storage.list_error = StorageError("list", "", message="backend down")
        before = _sample("tempshare_sweep_runs_total", outcome="error")

        assert await PeriodicSweeper(storage, clock=clock).run_once() is None
        assert _sample("tempshare_sweep_runs_total", outcome="error") == before + 1


@pytest.mark.unit
class TestPeriodicLoop:
    async def test_start_and_stop(self, seeded: FakeObjectStorage, clock: FakeClock) -> None:
        sweeper = PeriodicSweeper(seeded, interval=0.01, clock=clock)

        sweeper.start()
        assert sweeper.running
        await asyncio.sleep(0.05)
        await sweeper.stop()

        assert not sweeper.running
        assert "100" in seeded.removed

    async def test_start_twice_keeps_one_task(self, storage: FakeObjectStorage, clock: FakeClock) -> None:
        sweeper = PeriodicSweeper(storage, interval=0.01, clock=clock)
        sweeper.start()
        task = sweeper._task
        sweeper.start()
        assert sweeper._task is task
        await sweeper.stop()

    async def test_loop_survives_failures(self, storage: FakeObjectStorage, clock: FakeClock) -> None:
        storage.list_error = StorageError("list", "", message="backend down")
        sweeper = PeriodicSweeper(storage, interval=0.01, clock=clock)

        sweeper.start()
        await asyncio.sleep(0.05)
        assert sweeper.running

        storage.list_error = None
        storage.seed(["100/a.txt"])
        await asyncio.sleep(0.05)
        await sweeper.stop()

        assert storage.removed == ["100"]

    async def test_stop_without_start(self, storage: FakeObjectStorage) -> None:
        await PeriodicSweeper(storage).stop()


@pytest.mark.unit
class TestRecordReport:
    def test_bucket_counters(self) -> None:
        before = _sample("tempshare_sweep_buckets_total", result="deleted")
        report = SweepReport(
            started_at=datetime(2024, 6, 10, tzinfo=UTC),
            deleted=["100", "200"],
            failed={"300": "boom"},
        )

        record_report(report)

        assert _sample("tempshare_sweep_buckets_total", result="deleted") == before + 2
