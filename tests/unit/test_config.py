"""Tests for environment-driven settings."""

from __future__ import annotations

import pytest

from tempshare.config import Settings
from tempshare.placement.objects import DEFAULT_BUFFER_SIZE

_ENV_NAMES = (
    "STORAGE_BACKEND",
    "STORAGE_ROOT",
    "S3_ENDPOINT_URL",
    "AWS_SECRET_ACCESS_KEY",
    "WRITE_BUFFER_BYTES",
    "MAX_PARTS",
    "SWEEP_MODE",
    "CORS_ORIGINS",
    "REDIS_URL",
    "CELERY_RESULT_BACKEND",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


@pytest.mark.unit
class TestFromEnv:
    def test_defaults(self) -> None:
        settings = Settings.from_env()

        assert settings.storage_backend == "fs"
        assert settings.write_buffer_bytes == DEFAULT_BUFFER_SIZE
        assert settings.s3_endpoint_url is None
        assert settings.sweep_mode == "inline"
        assert settings.cors_origins == ()
        assert settings.redis_url == "redis://localhost:6379/0"
        assert settings.celery_result_backend is None

    def test_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STORAGE_BACKEND", " S3 ")
        monkeypatch.setenv("S3_ENDPOINT_URL", "http://minio:9000")
        monkeypatch.setenv("MAX_PARTS", "32")
        monkeypatch.setenv("SWEEP_MODE", "celery")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("REDIS_URL", "redis://cache:6379/1")
        monkeypatch.setenv("CELERY_RESULT_BACKEND", "redis://results:6379/0")

        settings = Settings.from_env()

        assert settings.storage_backend == "s3"
        assert settings.s3_endpoint_url == "http://minio:9000"
        assert settings.max_parts == 32
        assert settings.sweep_mode == "celery"
        assert settings.log_level == "DEBUG"
        assert settings.redis_url == "redis://cache:6379/1"
        assert settings.celery_result_backend == "redis://results:6379/0"

    def test_blank_int_uses_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WRITE_BUFFER_BYTES", "  ")
        assert Settings.from_env().write_buffer_bytes == DEFAULT_BUFFER_SIZE

    @pytest.mark.parametrize("raw", ["lots", "1.5", "0", "-3"])
    def test_rejects_bad_int(self, monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
        monkeypatch.setenv("MAX_PARTS", raw)
        with pytest.raises(ValueError, match="MAX_PARTS"):
            Settings.from_env()

    def test_rejects_unknown_backend(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STORAGE_BACKEND", "gcs")
        with pytest.raises(ValueError, match="STORAGE_BACKEND"):
            Settings.from_env()

    def test_cors_origins_split(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CORS_ORIGINS", "https://a.example, ,https://b.example")
        assert Settings.from_env().cors_origins == ("https://a.example", "https://b.example")

    def test_secret_not_in_repr(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "hunter2")
        settings = Settings.from_env()
        assert settings.aws_secret_access_key == "hunter2"
        assert "hunter2" not in repr(settings)
