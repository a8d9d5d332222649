from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from vanish.core.deps import get_lifecycle
from vanish.expiry.base import ExpiryIndexError
from vanish.services.lifecycle import BlobLifecycle
from vanish.storage.base import BlobStoreError

router = APIRouter(tags=["health"])


@router.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
def readyz(lifecycle: BlobLifecycle = Depends(get_lifecycle)) -> dict[str, str]:
    try:
        lifecycle.blob_store.ping()
    except BlobStoreError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="blob store not ready",
        ) from e
    try:
        lifecycle.expiry_index.ping()
    except ExpiryIndexError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="expiry index not ready",
        ) from e
    return {"status": "ready"}
