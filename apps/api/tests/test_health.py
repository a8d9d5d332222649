from __future__ import annotations

from fastapi.testclient import TestClient

from vanish.core.deps import get_lifecycle
from vanish.expiry.base import ExpiryIndexError
from vanish.expiry.memory import MemoryExpiryIndex
from vanish.main import create_app
from vanish.services.lifecycle import BlobLifecycle
from vanish.services.payments import RejectAllGate
from vanish.storage.base import BlobStoreError
from vanish.storage.memory import MemoryBlobStore


class DownBlobStore(MemoryBlobStore):
    def ping(self) -> None:
        raise BlobStoreError("bucket unreachable")


class DownExpiryIndex(MemoryExpiryIndex):
    def ping(self) -> None:
        raise ExpiryIndexError("connection refused")


def _client_with(*, blob_store, expiry_index) -> TestClient:  # type: ignore[no-untyped-def]
    app = create_app()
    lifecycle = BlobLifecycle(
        blob_store=blob_store,
        expiry_index=expiry_index,
        payment_gate=RejectAllGate(),
    )
    app.dependency_overrides[get_lifecycle] = lambda: lifecycle
    return TestClient(app)


def test_healthz_ok() -> None:
    app = create_app()
    client = TestClient(app)
    res = client.get("/healthz")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}


def test_readyz_builds_stores_from_settings() -> None:
    app = create_app()
    client = TestClient(app)
    res = client.get("/readyz")
    assert res.status_code == 200
    assert res.json() == {"status": "ready"}
    assert isinstance(app.state.lifecycle.blob_store, MemoryBlobStore)


def test_readyz_fails_when_blob_store_is_down() -> None:
    client = _client_with(blob_store=DownBlobStore(), expiry_index=MemoryExpiryIndex())
    res = client.get("/readyz")
    assert res.status_code == 503
    assert res.json()["detail"] == "blob store not ready"


def test_readyz_fails_when_expiry_index_is_down() -> None:
    client = _client_with(blob_store=MemoryBlobStore(), expiry_index=DownExpiryIndex())
    res = client.get("/readyz")
    assert res.status_code == 503
    assert res.json()["detail"] == "expiry index not ready"
