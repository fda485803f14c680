"""Retention menu offered to uploaders."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

logger = logging.getLogger(__name__)

# Ordered: the first entry is the fallback for unknown choices.
SHARE_FOR_OPTIONS: dict[str, timedelta] = {
    "30 minutes": timedelta(minutes=30),
    "1 hour": timedelta(hours=1),
    "6 hours": timedelta(hours=6),
    "12 hours": timedelta(hours=12),
    "1 day": timedelta(days=1),
    "3 days": timedelta(days=3),
}

DEFAULT_SHARE_FOR = next(iter(SHARE_FOR_OPTIONS))


def resolve_retention(label: str | None) -> timedelta:
    """Look up a menu entry, falling back to the shortest retention."""
    if label in SHARE_FOR_OPTIONS:
        return SHARE_FOR_OPTIONS[label]
    logger.debug("Unknown share-for option %r, using %r", label, DEFAULT_SHARE_FOR)
    return SHARE_FOR_OPTIONS[DEFAULT_SHARE_FOR]


def expiration_after(label: str | None, now: datetime) -> datetime:
    return now + resolve_retention(label)


def format_duration(duration: timedelta) -> str:
    """Human readable remaining time, e.g. ``1days 2h 5m``; zero parts are dropped."""
    seconds = max(int(duration.total_seconds()), 0)
    fields = (
        ("days", seconds // 86400),
        ("h", seconds // 3600 % 24),
        ("m", seconds // 60 % 60),
        ("s", seconds % 60),
    )
    return " ".join(f"{value}{unit}" for unit, value in fields if value) or "0s"
