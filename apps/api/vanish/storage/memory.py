from __future__ import annotations

import threading
from collections.abc import Iterator
from datetime import datetime

from vanish.storage.base import BlobNotFoundError, BlobStore, StoredBlob


class MemoryBlobStore(BlobStore):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._blobs: dict[str, tuple[bytes, StoredBlob]] = {}

    def put_bytes(
        self,
        *,
        key: str,
        data: bytes,
        created_at: datetime,
        expires_at: datetime,
    ) -> StoredBlob:
        stored = StoredBlob(
            storage_key=key,
            size_bytes=len(data),
            created_at=created_at,
            expires_at=expires_at,
        )
        with self._lock:
            self._blobs[key] = (bytes(data), stored)
        return stored

    def get_bytes(self, *, key: str) -> bytes:
        with self._lock:
            entry = self._blobs.get(key)
        if entry is None:
            raise BlobNotFoundError(key)
        return entry[0]

    def delete(self, *, key: str) -> None:
        with self._lock:
            self._blobs.pop(key, None)

    def iter_blobs(self) -> Iterator[StoredBlob]:
        with self._lock:
            snapshot = [stored for _, stored in self._blobs.values()]
        yield from snapshot

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._blobs
