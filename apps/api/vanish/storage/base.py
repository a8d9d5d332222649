from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class StoredBlob:
    storage_key: str
    size_bytes: int
    created_at: datetime | None = None
    # Informational only; expiry is enforced by the expiry index.
    expires_at: datetime | None = None


class BlobStoreError(RuntimeError):
    pass


class BlobNotFoundError(BlobStoreError):
    pass


class BlobStore:
    """Durable, content-opaque storage of ciphertext keyed by blob identifier."""

    def put_bytes(
        self,
        *,
        key: str,
        data: bytes,
        created_at: datetime,
        expires_at: datetime,
    ) -> StoredBlob:  # pragma: no cover
        raise NotImplementedError

    def get_bytes(self, *, key: str) -> bytes:  # pragma: no cover
        raise NotImplementedError

    def delete(self, *, key: str) -> None:  # pragma: no cover
        raise NotImplementedError

    def exists(self, *, key: str) -> bool:
        try:
            self.get_bytes(key=key)
        except BlobNotFoundError:
            return False
        return True

    def iter_blobs(self) -> Iterator[StoredBlob]:  # pragma: no cover
        raise NotImplementedError

    def ping(self) -> None:
        return None
