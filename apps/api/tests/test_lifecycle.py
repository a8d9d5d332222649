from __future__ import annotations

import math
from datetime import timedelta

import pytest

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
from vanish.expiry.base import ExpiryIndexError, ExpiryRecord
from vanish.expiry.memory import MemoryExpiryIndex
from vanish.services.lifecycle import BlobLifecycle, BlobState, LifecyclePolicy
from vanish.services.payments import SignedProofGate, issue_payment_proof
from vanish.storage.base import BlobStoreError
from vanish.storage.memory import MemoryBlobStore

PROOF_SECRET = "test-proof-secret"


class FailingIndex(MemoryExpiryIndex):
    def put(self, identifier, record, *, ttl_seconds):  # type: ignore[no-untyped-def]
        raise ExpiryIndexError("index unreachable")


class FailingBlobStore(MemoryBlobStore):
    def put_bytes(self, *, key, data, created_at, expires_at):  # type: ignore[no-untyped-def]
        raise BlobStoreError("disk full")


def test_upload_then_download_returns_identical_bytes(lifecycle, clock) -> None:
    result = lifecycle.upload(b"\x01" * 32)

    assert len(result.identifier) == 36
    assert result.ttl_hours == 24
    assert result.expires_at == clock() + timedelta(hours=24)
    assert result.has_payment is False

    downloaded = lifecycle.download(result.identifier)
    assert downloaded.ciphertext == b"\x01" * 32
    assert downloaded.expires_at == result.expires_at
    assert lifecycle.inspect(result.identifier) == BlobState.live


def test_identifiers_are_unique(lifecycle) -> None:
    ids = {lifecycle.upload(b"x").identifier for _ in range(50)}
    assert len(ids) == 50


def test_upload_rejects_empty_body(lifecycle, blob_store) -> None:
    with pytest.raises(EmptyBodyError):
        lifecycle.upload(b"")
    assert list(blob_store.iter_blobs()) == []


def test_upload_rejects_oversized_body(blob_store, expiry_index, clock) -> None:
    lifecycle = BlobLifecycle(
        blob_store=blob_store,
        expiry_index=expiry_index,
        payment_gate=SignedProofGate(PROOF_SECRET, clock=clock),
        policy=LifecyclePolicy(max_blob_size_bytes=16),
        clock=clock,
    )
    lifecycle.upload(b"x" * 16)
    with pytest.raises(PayloadTooLargeError):
        lifecycle.upload(b"x" * 17)


@pytest.mark.parametrize("ttl", [0, -1, 169, 10_000, True])
def test_upload_rejects_out_of_range_ttl(lifecycle, ttl) -> None:
    with pytest.raises(InvalidTtlError):
        lifecycle.upload(b"x", ttl_hours=ttl)


@pytest.mark.parametrize("ttl", [1, 168])
def test_upload_accepts_ttl_bounds(lifecycle, clock, ttl: int) -> None:
    result = lifecycle.upload(b"x", ttl_hours=ttl)
    assert result.expires_at == clock() + timedelta(hours=ttl)


@pytest.mark.parametrize("price", [-0.01, math.nan, math.inf])
def test_upload_rejects_bad_price(lifecycle, price: float) -> None:
    with pytest.raises(InvalidPriceError):
        lifecycle.upload(b"x", price_usd=price)


def test_zero_price_is_free(lifecycle) -> None:
    result = lifecycle.upload(b"x", price_usd=0)
    assert result.has_payment is False
    assert lifecycle.download(result.identifier).ciphertext == b"x"


def test_unknown_identifier_is_not_found(lifecycle) -> None:
    with pytest.raises(NotFoundError):
        lifecycle.download("00000000-0000-4000-8000-000000000000")


def test_elapsed_index_ttl_is_not_found(lifecycle, clock) -> None:
    result = lifecycle.upload(b"x", ttl_hours=1)
    clock.advance(hours=1, seconds=1)
    with pytest.raises(NotFoundError):
        lifecycle.download(result.identifier)


def test_past_expires_at_is_gone_and_reclaimed(lifecycle, blob_store, expiry_index, clock) -> None:
    # Index entry still alive but the recorded deadline has passed.
    now = clock()
    blob_store.put_bytes(key="late", data=b"c", created_at=now, expires_at=now)
    expiry_index.put(
        "late",
        ExpiryRecord(created_at=now - timedelta(hours=2), expires_at=now - timedelta(seconds=1)),
        ttl_seconds=3600,
    )

    assert lifecycle.inspect("late") == BlobState.gone
    with pytest.raises(GoneError):
        lifecycle.download("late")

    assert "late" not in blob_store
    assert "late" not in expiry_index


def test_orphan_index_is_healed_and_reported_not_found(lifecycle, blob_store, expiry_index) -> None:
    result = lifecycle.upload(b"x")
    blob_store.delete(key=result.identifier)
    assert lifecycle.inspect(result.identifier) == BlobState.orphan_index

    with pytest.raises(NotFoundError):
        lifecycle.download(result.identifier)
    assert result.identifier not in expiry_index
    assert lifecycle.inspect(result.identifier) == BlobState.gone


def test_orphan_blob_is_never_readable(lifecycle, expiry_index) -> None:
    result = lifecycle.upload(b"x")
    expiry_index.delete(result.identifier)

    assert lifecycle.inspect(result.identifier) == BlobState.orphan_blob
    with pytest.raises(NotFoundError):
        lifecycle.download(result.identifier)


def test_index_failure_leaves_orphan_blob_and_fails_upload(blob_store, clock) -> None:
    lifecycle = BlobLifecycle(
        blob_store=blob_store,
        expiry_index=FailingIndex(clock=clock),
        payment_gate=SignedProofGate(PROOF_SECRET, clock=clock),
        clock=clock,
        id_factory=lambda: "fixed-id",
    )
    with pytest.raises(StorageUnavailableError):
        lifecycle.upload(b"x")

    assert "fixed-id" in blob_store
    assert lifecycle.inspect("fixed-id") == BlobState.orphan_blob


def test_blob_store_failure_writes_nothing(expiry_index, clock) -> None:
    lifecycle = BlobLifecycle(
        blob_store=FailingBlobStore(),
        expiry_index=expiry_index,
        payment_gate=SignedProofGate(PROOF_SECRET, clock=clock),
        clock=clock,
        id_factory=lambda: "fixed-id",
    )
    with pytest.raises(StorageUnavailableError):
        lifecycle.upload(b"x")
    assert "fixed-id" not in expiry_index


def test_paid_blob_requires_proof(lifecycle, clock) -> None:
    result = lifecycle.upload(b"paid", price_usd=0.5)
    assert result.has_payment is True

    with pytest.raises(PaymentRequiredError) as excinfo:
        lifecycle.download(result.identifier)
    assert excinfo.value.price == 0.5
    assert excinfo.value.currency == "USD"
    assert excinfo.value.methods == ["lightning", "stripe"]

    with pytest.raises(PaymentRequiredError):
        lifecycle.download(result.identifier, payment_proof="garbage")

    proof = issue_payment_proof(secret=PROOF_SECRET, identifier=result.identifier, now=clock())
    assert lifecycle.download(result.identifier, payment_proof=proof).ciphertext == b"paid"


def test_proof_for_another_blob_is_rejected(lifecycle, clock) -> None:
    paid = lifecycle.upload(b"paid", price_usd=3)
    other = lifecycle.upload(b"other", price_usd=3)
    proof = issue_payment_proof(secret=PROOF_SECRET, identifier=other.identifier, now=clock())
    with pytest.raises(PaymentRequiredError):
        lifecycle.download(paid.identifier, payment_proof=proof)


def test_reclaim_removes_both_halves(lifecycle, blob_store, expiry_index) -> None:
    result = lifecycle.upload(b"x")
    lifecycle.reclaim(result.identifier)
    assert result.identifier not in blob_store
    assert result.identifier not in expiry_index
    # Idempotent.
    lifecycle.reclaim(result.identifier)
