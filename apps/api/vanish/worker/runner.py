from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta

from vanish.core.clock import Clock, ensure_utc, utc_now
from vanish.core.config import get_settings
from vanish.core.deps import build_lifecycle
from vanish.core.errors import StorageUnavailableError
from vanish.core.logs import log_event
from vanish.core.metrics import observe_reclaimed
from vanish.expiry.base import ExpiryIndexError
from vanish.services.lifecycle import BlobLifecycle
from vanish.storage.base import BlobStoreError, StoredBlob

logger = logging.getLogger("vanish.worker")


@dataclass(frozen=True)
class SweeperConfig:
    interval_seconds: float = 300.0
    orphan_grace_seconds: int = 15 * 60

    @classmethod
    def from_settings(cls) -> SweeperConfig:
        settings = get_settings()
        return cls(
            interval_seconds=settings.SWEEP_INTERVAL_SECONDS,
            orphan_grace_seconds=settings.ORPHAN_GRACE_SECONDS,
        )


@dataclass(frozen=True)
class SweepReport:
    scanned: int = 0
    expired: int = 0
    orphans: int = 0
    failed: int = 0
    index_purged: int = 0


def run_sweeper_forever(config: SweeperConfig, *, lifecycle: BlobLifecycle | None = None) -> None:
    lifecycle = lifecycle or build_lifecycle(get_settings())
    while True:
        try:
            sweep_once(lifecycle=lifecycle, config=config)
        except (BlobStoreError, ExpiryIndexError) as e:
            # Storage outages are retried on the next pass.
            log_event(logger, "sweep.failed", level=logging.ERROR, error=str(e))
        time.sleep(config.interval_seconds)


def sweep_once(
    *,
    lifecycle: BlobLifecycle,
    config: SweeperConfig,
    clock: Clock = utc_now,
) -> SweepReport:
    now = clock()
    grace = timedelta(seconds=config.orphan_grace_seconds)
    scanned = expired = orphans = failed = 0

    for blob in lifecycle.blob_store.iter_blobs():
        scanned += 1
        try:
            reason = _reclaim_reason(lifecycle=lifecycle, blob=blob, now=now, grace=grace)
            if reason is None:
                continue
            lifecycle.reclaim(blob.storage_key)
        except (StorageUnavailableError, ExpiryIndexError) as e:
            failed += 1
            log_event(
                logger,
                "sweep.reclaim_failed",
                level=logging.WARNING,
                identifier=blob.storage_key,
                error=str(e.__cause__ or e),
            )
            continue

        if reason == "expired":
            expired += 1
        else:
            orphans += 1
        log_event(logger, "sweep.reclaimed", identifier=blob.storage_key, reason=reason)

    index_purged = lifecycle.expiry_index.purge_expired()

    observe_reclaimed(kind="expired", count=expired)
    observe_reclaimed(kind="orphan_blob", count=orphans)
    report = SweepReport(
        scanned=scanned,
        expired=expired,
        orphans=orphans,
        failed=failed,
        index_purged=index_purged,
    )
    log_event(
        logger,
        "sweep.completed",
        scanned=report.scanned,
        expired=report.expired,
        orphans=report.orphans,
        failed=report.failed,
        index_purged=report.index_purged,
    )
    return report


def _reclaim_reason(
    *,
    lifecycle: BlobLifecycle,
    blob: StoredBlob,
    now: datetime,
    grace: timedelta,
) -> str | None:
    if blob.expires_at is not None and now >= ensure_utc(blob.expires_at):
        return "expired"

    record = lifecycle.expiry_index.get(blob.storage_key)
    if record is not None:
        return "expired" if now >= record.expires_at else None

    # No index entry: either the upload is still between its two writes or the
    # index write failed. Only the latter outlives the grace period.
    if blob.created_at is None or now - ensure_utc(blob.created_at) >= grace:
        return "orphan_blob"
    return None
