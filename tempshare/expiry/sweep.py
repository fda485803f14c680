"""Expiry sweep: bulk-delete bucket directories whose hour has passed.

The sweep is stateless. It lists the storage root, decodes every entry
name as a bucket key and removes the whole directory once its instant is
at or before ``now``. Each entry succeeds or fails on its own: a name
that is not a bucket key is skipped, a failed delete is logged, and the
remaining entries are still processed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from tempshare.expiry.buckets import expiration_for
from tempshare.infra.resilience.retry import RetryExhaustedError, RetryPolicy, retry_with_backoff
from tempshare.shared.errors import InvalidBucketKeyError, StorageError, SweepError
from tempshare.shared.logging.error_handler import log_structured_error
from tempshare.shared.types import ObjectMetadata, SweepReport

if TYPE_CHECKING:
    from datetime import datetime

    from tempshare.ports.object_storage_port import ObjectStoragePort

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_CONCURRENCY = 4


async def sweep(
    storage: ObjectStoragePort,
    now: datetime,
    *,
    max_concurrency: int = DEFAULT_SWEEP_CONCURRENCY,
    retry: RetryPolicy | None = None,
) -> SweepReport:
    """Remove every bucket directory that expired at or before ``now``.

    Args:
        storage: Backend holding the bucket directories at its root.
        now: Reference instant; buckets with expiration <= now are removed.
        max_concurrency: Upper bound on buckets processed in parallel.
        retry: Backoff policy for transient delete failures.

    Returns:
        SweepReport listing deleted, retained, skipped and failed entries.

    Raises:
        SweepError: the storage root could not be listed.
    """
    logger.debug("Entering sweep at %s", now.isoformat())
    report = SweepReport(started_at=now)

    try:
        entries = await storage.list_dir("")
    except StorageError as exc:
        msg = f"Unable to list directories: {exc}"
        raise SweepError(msg) from exc

    semaphore = asyncio.Semaphore(max(1, max_concurrency))
    policy = retry or RetryPolicy()

    async def _bounded(entry: ObjectMetadata) -> None:
        async with semaphore:
            try:
                await _sweep_entry(storage, entry, now, report, policy)
            except Exception as exc:
                report.failed[entry.name] = str(exc)
                log_structured_error(logger, exc, context={"bucket": entry.name})

    await asyncio.gather(*(_bounded(entry) for entry in entries))

    logger.info("Sweep finished: %s", report.summary())
    return report


async def _sweep_entry(
    storage: ObjectStoragePort,
    entry: ObjectMetadata,
    now: datetime,
    report: SweepReport,
    policy: RetryPolicy,
) -> None:
    name = entry.name
    if not entry.is_dir:
        report.skipped.append(name)
        logger.warning("Skipping '%s': not a bucket directory", name)
        return

    try:
        expiration = expiration_for(name)
    except InvalidBucketKeyError as exc:
        report.skipped.append(name)
        logger.warning("Unable to parse directory expiration for '%s': %s", name, exc)
        return

    if expiration > now:
        report.retained.append(name)
        logger.debug("'%s' lives for now... at least until %s", name, expiration.isoformat())
        return

    try:
        await retry_with_backoff(
            lambda: storage.remove_all(f"{name}/"),
            policy=policy,
            operation=f"remove bucket {name}",
        )
    except RetryExhaustedError as exc:
        report.failed[name] = str(exc.last_error)
        log_structured_error(
            logger,
            exc.last_error,
            context={"bucket": name, "attempts": exc.attempts},
        )
        return

    report.deleted.append(name)
    logger.info(
        "Removed expired directory '%s', which expired %s",
        name,
        expiration.isoformat(),
    )
