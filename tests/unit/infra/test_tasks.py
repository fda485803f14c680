"""Tests for the Celery sweep task and beat schedule."""

from __future__ import annotations

from pathlib import Path

import pytest
from celery.schedules import crontab

from tempshare.config import Settings
from tempshare.infra.tasks.broker import SWEEP_TASK_NAME, app, create_celery_app
from tempshare.infra.tasks.tasks import sweep_expired_buckets


@pytest.mark.unit
class TestBeatSchedule:
    def test_sweep_every_30_minutes(self) -> None:
        entry = app.conf.beat_schedule["sweep-expired-buckets"]
        assert entry["task"] == SWEEP_TASK_NAME
        assert isinstance(entry["schedule"], crontab)
        assert entry["schedule"].minute == {0, 30}

    def test_task_name_matches_schedule(self) -> None:
        assert sweep_expired_buckets.name == SWEEP_TASK_NAME


@pytest.mark.unit
class TestCreateCeleryApp:
    def test_uses_configured_redis(self) -> None:
        celery_app = create_celery_app(Settings(redis_url="redis://cache:6379/2"))
        assert celery_app.conf.broker_url == "redis://cache:6379/2"
        assert celery_app.conf.result_backend == "redis://cache:6379/2"

    def test_separate_result_backend(self) -> None:
        settings = Settings(redis_url="redis://cache:6379/2", celery_result_backend="redis://results:6379/0")
        celery_app = create_celery_app(settings)
        assert celery_app.conf.broker_url == "redis://cache:6379/2"
        assert celery_app.conf.result_backend == "redis://results:6379/0"


@pytest.mark.unit
class TestSweepTask:
    def test_runs_against_configured_filesystem(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        root = tmp_path / "storage"
        (root / "100").mkdir(parents=True)
        (root / "100" / "a.txt").write_bytes(b"old")
        (root / "99999999999").mkdir()
        monkeypatch.setenv("STORAGE_BACKEND", "fs")
        monkeypatch.setenv("STORAGE_ROOT", str(root))

        result = sweep_expired_buckets()

        assert result["deleted"] == ["100"]
        assert result["retained"] == ["99999999999"]
        assert result["failed"] == {}
        assert not (root / "100").exists()
