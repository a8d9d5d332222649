"""Upload/download state machine over the blob store and the expiry index.

The two stores are written independently, so they can disagree:

* orphan blob: ciphertext stored, index write failed (or the index entry
  expired first). Invisible to readers; the sweeper reclaims it.
* orphan index: index entry alive, ciphertext missing. Download heals this
  by deleting the index entry and answering NOT_FOUND.

Neither state is ever reported to callers as an error.
"""

from __future__ import annotations

import enum
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from vanish.core.clock import Clock, utc_now
from vanish.core.config import Settings
from vanish.core.errors import (
    EmptyBodyError,
    GoneError,
    InvalidPriceError,
    InvalidTtlError,
    NotFoundError,
    PayloadTooLargeError,
    PaymentRequiredError,
    StorageUnavailableError,
)
from vanish.core.logs import log_event
from vanish.core.metrics import observe_download, observe_reclaimed, observe_upload
from vanish.core.security import new_blob_identifier
from vanish.expiry.base import ExpiryIndex, ExpiryIndexError, ExpiryRecord
from vanish.services.payments import PaymentGate
from vanish.storage.base import BlobNotFoundError, BlobStore, BlobStoreError

logger = logging.getLogger("vanish.api")

SECONDS_PER_HOUR = 3600


class BlobState(enum.StrEnum):
    live = "live"
    orphan_blob = "orphan_blob"
    orphan_index = "orphan_index"
    gone = "gone"


@dataclass(frozen=True)
class LifecyclePolicy:
    default_ttl_hours: int = 24
    min_ttl_hours: int = 1
    max_ttl_hours: int = 168
    max_blob_size_bytes: int = 25 * 1024 * 1024
    currency: str = "USD"
    payment_methods: tuple[str, ...] = field(default=("lightning", "stripe"))

    @classmethod
    def from_settings(cls, settings: Settings) -> LifecyclePolicy:
        return cls(
            default_ttl_hours=settings.DEFAULT_TTL_HOURS,
            min_ttl_hours=settings.MIN_TTL_HOURS,
            max_ttl_hours=settings.MAX_TTL_HOURS,
            max_blob_size_bytes=settings.MAX_BLOB_SIZE_BYTES,
            currency=settings.PAYMENT_CURRENCY,
            payment_methods=tuple(settings.payment_methods),
        )


@dataclass(frozen=True)
class UploadResult:
    identifier: str
    created_at: datetime
    expires_at: datetime
    ttl_hours: int
    has_payment: bool


@dataclass(frozen=True)
class DownloadResult:
    identifier: str
    ciphertext: bytes
    expires_at: datetime


class BlobLifecycle:
    def __init__(
        self,
        *,
        blob_store: BlobStore,
        expiry_index: ExpiryIndex,
        payment_gate: PaymentGate,
        policy: LifecyclePolicy | None = None,
        clock: Clock = utc_now,
        id_factory: Callable[[], str] = new_blob_identifier,
    ) -> None:
        self.blob_store = blob_store
        self.expiry_index = expiry_index
        self.payment_gate = payment_gate
        self.policy = policy or LifecyclePolicy()
        self._clock = clock
        self._id_factory = id_factory

    def upload(
        self,
        ciphertext: bytes,
        *,
        ttl_hours: int | None = None,
        price_usd: float | None = None,
    ) -> UploadResult:
        if not ciphertext:
            observe_upload(outcome="rejected")
            raise EmptyBodyError()
        if len(ciphertext) > self.policy.max_blob_size_bytes:
            observe_upload(outcome="rejected")
            raise PayloadTooLargeError(
                f"Maximum blob size is {self.policy.max_blob_size_bytes // (1024 * 1024)}MB"
            )
        ttl = self._resolve_ttl(ttl_hours)
        price = self._resolve_price(price_usd)

        identifier = self._id_factory()
        created_at = self._clock()
        expires_at = created_at + timedelta(hours=ttl)

        try:
            self.blob_store.put_bytes(
                key=identifier,
                data=ciphertext,
                created_at=created_at,
                expires_at=expires_at,
            )
        except BlobStoreError as e:
            observe_upload(outcome="failed")
            log_event(
                logger,
                "blob.upload_failed",
                level=logging.ERROR,
                identifier=identifier,
                stage="blob_store",
                error=str(e),
            )
            raise StorageUnavailableError("Failed to store blob") from e

        record = ExpiryRecord(
            created_at=created_at,
            expires_at=expires_at,
            has_payment=price is not None,
            price_usd=price,
        )
        try:
            self.expiry_index.put(identifier, record, ttl_seconds=ttl * SECONDS_PER_HOUR)
        except ExpiryIndexError as e:
            # The ciphertext stays behind as an orphan blob; the sweeper owns it now.
            observe_upload(outcome="failed")
            log_event(
                logger,
                "blob.orphan_blob_left",
                level=logging.ERROR,
                identifier=identifier,
                stage="expiry_index",
                error=str(e),
            )
            raise StorageUnavailableError("Failed to store blob metadata") from e

        observe_upload(outcome="stored", size_bytes=len(ciphertext))
        log_event(
            logger,
            "blob.uploaded",
            identifier=identifier,
            size_bytes=len(ciphertext),
            ttl_hours=ttl,
            has_payment=record.has_payment,
        )
        return UploadResult(
            identifier=identifier,
            created_at=created_at,
            expires_at=expires_at,
            ttl_hours=ttl,
            has_payment=record.has_payment,
        )

    def download(self, identifier: str, *, payment_proof: str | None = None) -> DownloadResult:
        try:
            record = self.expiry_index.get(identifier)
        except ExpiryIndexError as e:
            observe_download(outcome="failed")
            raise StorageUnavailableError() from e

        if record is None:
            # Never existed and already expired look the same on purpose.
            observe_download(outcome="not_found")
            raise NotFoundError()

        if self._clock() >= record.expires_at:
            # The index TTL has not fired yet; the recorded deadline wins.
            self._reclaim_quietly(identifier, reason="expired")
            observe_download(outcome="gone")
            raise GoneError()

        if record.has_payment and not self.payment_gate.verify(identifier, payment_proof):
            observe_download(outcome="payment_required")
            raise PaymentRequiredError(
                price=record.price_usd or 0.0,
                currency=self.policy.currency,
                methods=list(self.policy.payment_methods),
            )

        try:
            ciphertext = self.blob_store.get_bytes(key=identifier)
        except BlobNotFoundError:
            self._heal_orphan_index(identifier)
            observe_download(outcome="not_found")
            raise NotFoundError("Blob not found") from None
        except BlobStoreError as e:
            observe_download(outcome="failed")
            raise StorageUnavailableError() from e

        observe_download(outcome="served")
        return DownloadResult(
            identifier=identifier,
            ciphertext=ciphertext,
            expires_at=record.expires_at,
        )

    def inspect(self, identifier: str) -> BlobState:
        try:
            record = self.expiry_index.get(identifier)
            has_blob = self.blob_store.exists(key=identifier)
        except (BlobStoreError, ExpiryIndexError) as e:
            raise StorageUnavailableError() from e

        if record is not None and self._clock() >= record.expires_at:
            return BlobState.gone
        if record is not None and has_blob:
            return BlobState.live
        if record is not None:
            return BlobState.orphan_index
        if has_blob:
            return BlobState.orphan_blob
        return BlobState.gone

    def reclaim(self, identifier: str) -> None:
        try:
            self.blob_store.delete(key=identifier)
            self.expiry_index.delete(identifier)
        except (BlobStoreError, ExpiryIndexError) as e:
            raise StorageUnavailableError() from e

    def _resolve_ttl(self, ttl_hours: int | None) -> int:
        if ttl_hours is None:
            return self.policy.default_ttl_hours
        if isinstance(ttl_hours, bool) or not isinstance(ttl_hours, int):
            raise InvalidTtlError()
        if not self.policy.min_ttl_hours <= ttl_hours <= self.policy.max_ttl_hours:
            raise InvalidTtlError(
                f"ttl must be between {self.policy.min_ttl_hours} and "
                f"{self.policy.max_ttl_hours} hours"
            )
        return ttl_hours

    def _resolve_price(self, price_usd: float | None) -> float | None:
        if price_usd is None:
            return None
        if not math.isfinite(price_usd) or price_usd < 0:
            raise InvalidPriceError()
        return float(price_usd) if price_usd > 0 else None

    def _heal_orphan_index(self, identifier: str) -> None:
        try:
            self.expiry_index.delete(identifier)
        except ExpiryIndexError as e:
            log_event(
                logger,
                "blob.orphan_index_heal_failed",
                level=logging.WARNING,
                identifier=identifier,
                error=str(e),
            )
            return
        observe_reclaimed(kind="orphan_index")
        log_event(logger, "blob.orphan_index_healed", identifier=identifier)

    def _reclaim_quietly(self, identifier: str, *, reason: str) -> None:
        try:
            self.reclaim(identifier)
        except StorageUnavailableError as e:
            log_event(
                logger,
                "blob.reclaim_failed",
                level=logging.WARNING,
                identifier=identifier,
                reason=reason,
                error=str(e.__cause__ or e),
            )
            return
        observe_reclaimed(kind=reason)
        log_event(logger, "blob.expired_reclaimed", identifier=identifier)
