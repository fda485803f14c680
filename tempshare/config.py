"""Runtime configuration read from environment variables.

Settings.from_env is called by the composition root (tempshare.main), the
Celery broker and the Celery sweep task. The S3 adapter also falls back
to the same variables when it is built without explicit values.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from tempshare.expiry.sweep import DEFAULT_SWEEP_CONCURRENCY
from tempshare.infra.scheduler import DEFAULT_SWEEP_INTERVAL
from tempshare.placement.objects import DEFAULT_BUFFER_SIZE, DEFAULT_CONCURRENCY
from tempshare.placement.service import DEFAULT_MAX_PARTS

_STORAGE_BACKENDS = frozenset({"fs", "s3"})
_SWEEP_MODES = frozenset({"inline", "celery", "off"})


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        msg = f"{name} must be an integer, got {raw!r}"
        raise ValueError(msg) from None
    if value <= 0:
        msg = f"{name} must be positive, got {value}"
        raise ValueError(msg)
    return value


def _env_choice(name: str, default: str, choices: frozenset[str]) -> str:
    value = os.environ.get(name, default).strip().lower() or default
    if value not in choices:
        msg = f"{name} must be one of {sorted(choices)}, got {value!r}"
        raise ValueError(msg)
    return value


@dataclass(frozen=True)
class Settings:
    """Service configuration."""

    storage_backend: str = "fs"
    storage_root: str = "var/storage"
    s3_bucket: str = "tempshare"
    s3_endpoint_url: str | None = None
    s3_region: str = "us-east-1"
    aws_access_key_id: str = ""
    aws_secret_access_key: str = field(default="", repr=False)
    write_buffer_bytes: int = DEFAULT_BUFFER_SIZE
    write_concurrency: int = DEFAULT_CONCURRENCY
    max_parts: int = DEFAULT_MAX_PARTS
    sweep_mode: str = "inline"
    sweep_interval_seconds: int = int(DEFAULT_SWEEP_INTERVAL)
    sweep_concurrency: int = DEFAULT_SWEEP_CONCURRENCY
    redis_url: str = "redis://localhost:6379/0"
    celery_result_backend: str | None = None
    cors_origins: tuple[str, ...] = ()
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Settings:
        cors_raw = os.environ.get("CORS_ORIGINS", "")
        return cls(
            storage_backend=_env_choice("STORAGE_BACKEND", "fs", _STORAGE_BACKENDS),
            storage_root=os.environ.get("STORAGE_ROOT", "var/storage"),
            s3_bucket=os.environ.get("S3_BUCKET", "tempshare"),
            s3_endpoint_url=os.environ.get("S3_ENDPOINT_URL") or None,
            s3_region=os.environ.get("S3_REGION", "us-east-1"),
            aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID", ""),
            aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY", ""),
            write_buffer_bytes=_env_int("WRITE_BUFFER_BYTES", DEFAULT_BUFFER_SIZE),
            write_concurrency=_env_int("WRITE_CONCURRENCY", DEFAULT_CONCURRENCY),
            max_parts=_env_int("MAX_PARTS", DEFAULT_MAX_PARTS),
            sweep_mode=_env_choice("SWEEP_MODE", "inline", _SWEEP_MODES),
            sweep_interval_seconds=_env_int("SWEEP_INTERVAL_SECONDS", int(DEFAULT_SWEEP_INTERVAL)),
            sweep_concurrency=_env_int("SWEEP_CONCURRENCY", DEFAULT_SWEEP_CONCURRENCY),
            redis_url=os.environ.get("REDIS_URL", "redis://localhost:6379/0"),
            celery_result_backend=os.environ.get("CELERY_RESULT_BACKEND") or None,
            cors_origins=tuple(o.strip() for o in cors_raw.split(",") if o.strip()),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )
