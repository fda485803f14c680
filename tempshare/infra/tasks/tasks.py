"""Celery task wrapping the expiry sweep."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

from celery import shared_task

from tempshare.config import Settings
from tempshare.expiry.sweep import sweep
from tempshare.infra.scheduler import record_report
from tempshare.infra.storage import build_storage

logger = logging.getLogger(__name__)


@shared_task(name="tempshare.sweep_expired_buckets", ignore_result=False)
def sweep_expired_buckets() -> dict[str, Any]:
    """Run one sweep against the configured backend and return its report."""
    settings = Settings.from_env()
    storage = build_storage(settings)
    report = asyncio.run(
        sweep(storage, datetime.now(UTC), max_concurrency=settings.sweep_concurrency),
    )
    record_report(report)
    logger.info("Celery sweep finished: %s", report.summary())
    return {
        "started_at": report.started_at.isoformat(),
        "deleted": report.deleted,
        "retained": report.retained,
        "skipped": report.skipped,
        "failed": report.failed,
    }
