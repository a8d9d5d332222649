from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta

import pytest

# Tests never reach real storage; set before anything imports Settings.
os.environ["APP_ENV"] = "test"
os.environ["BLOB_STORE"] = "memory"
os.environ["EXPIRY_INDEX"] = "memory"
os.environ["ENABLE_OTEL_TRACING"] = "false"
os.environ["PAYMENT_PROOF_SECRET"] = "test-proof-secret"

from fastapi.testclient import TestClient  # noqa: E402

from vanish.core.config import get_settings  # noqa: E402
from vanish.core.deps import get_lifecycle  # noqa: E402
from vanish.expiry.memory import MemoryExpiryIndex  # noqa: E402
from vanish.services.lifecycle import BlobLifecycle  # noqa: E402
from vanish.services.payments import SignedProofGate  # noqa: E402
from vanish.storage.memory import MemoryBlobStore  # noqa: E402

PROOF_SECRET = "test-proof-secret"


class FrozenClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 3, 1, 12, 0, tzinfo=UTC))


@pytest.fixture()
def blob_store() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture()
def expiry_index(clock: FrozenClock) -> MemoryExpiryIndex:
    return MemoryExpiryIndex(clock=clock)


@pytest.fixture()
def lifecycle(
    blob_store: MemoryBlobStore,
    expiry_index: MemoryExpiryIndex,
    clock: FrozenClock,
) -> BlobLifecycle:
    return BlobLifecycle(
        blob_store=blob_store,
        expiry_index=expiry_index,
        payment_gate=SignedProofGate(PROOF_SECRET, clock=clock),
        clock=clock,
    )


@pytest.fixture()
def client(lifecycle: BlobLifecycle) -> TestClient:
    from vanish.main import create_app

    app = create_app()
    app.dependency_overrides[get_lifecycle] = lambda: lifecycle
    return TestClient(app)
