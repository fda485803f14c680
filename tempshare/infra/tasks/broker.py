"""Celery broker entry point for the sweep worker and beat containers.

Creates the Celery app instance that `celery -A tempshare.infra.tasks.broker`
references. Beat enqueues the expiry sweep every 30 minutes; run it
when SWEEP_MODE=celery instead of the in-process sweeper.
"""

from __future__ import annotations

from celery import Celery
from celery.schedules import crontab

from tempshare.config import Settings

SWEEP_TASK_NAME = "tempshare.sweep_expired_buckets"


def create_celery_app(settings: Settings) -> Celery:
    """Celery app on the Redis broker named by ``settings.redis_url``."""
    celery_app = Celery(
        "tempshare",
        broker=settings.redis_url,
        backend=settings.celery_result_backend or settings.redis_url,
    )
    celery_app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        timezone="UTC",
        enable_utc=True,
        task_track_started=True,
        task_acks_late=True,
        worker_prefetch_multiplier=1,
        beat_schedule={
            "sweep-expired-buckets": {
                "task": SWEEP_TASK_NAME,
                "schedule": crontab(minute="*/30"),
            },
        },
    )
    # Auto-discover tasks from the tempshare.infra.tasks package
    celery_app.autodiscover_tasks(["tempshare.infra.tasks"])
    return celery_app


app = create_celery_app(Settings.from_env())
