from __future__ import annotations

import json
import os
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path

from vanish.storage.base import BlobNotFoundError, BlobStore, BlobStoreError, StoredBlob

_META_SUFFIX = ".meta.json"
_TMP_SUFFIX = ".tmp"


class LocalBlobStore(BlobStore):
    def __init__(self, root_dir: str) -> None:
        self._root = Path(root_dir)
        self._root.mkdir(parents=True, exist_ok=True)

    def _path_for_key(self, key: str) -> Path:
        key = key.lstrip("/")
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise BlobStoreError(f"Unsupported blob key: {key!r}")
        return self._root / key

    def _meta_path(self, path: Path) -> Path:
        return path.with_name(path.name + _META_SUFFIX)

    def put_bytes(
        self,
        *,
        key: str,
        data: bytes,
        created_at: datetime,
        expires_at: datetime,
    ) -> StoredBlob:
        path = self._path_for_key(key)
        meta = json.dumps(
            {"created_at": created_at.isoformat(), "expires_at": expires_at.isoformat()},
            separators=(",", ":"),
            sort_keys=True,
        ).encode("utf-8")
        try:
            _atomic_write(path, data)
            _atomic_write(self._meta_path(path), meta)
        except OSError as e:
            raise BlobStoreError(str(e)) from e
        return StoredBlob(
            storage_key=key,
            size_bytes=len(data),
            created_at=created_at,
            expires_at=expires_at,
        )

    def get_bytes(self, *, key: str) -> bytes:
        path = self._path_for_key(key)
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise BlobNotFoundError(key) from e
        except OSError as e:
            raise BlobStoreError(str(e)) from e

    def delete(self, *, key: str) -> None:
        path = self._path_for_key(key)
        try:
            path.unlink(missing_ok=True)
            self._meta_path(path).unlink(missing_ok=True)
        except OSError as e:
            raise BlobStoreError(str(e)) from e

    def exists(self, *, key: str) -> bool:
        return self._path_for_key(key).is_file()

    def iter_blobs(self) -> Iterator[StoredBlob]:
        try:
            entries = sorted(self._root.iterdir())
        except OSError as e:
            raise BlobStoreError(str(e)) from e

        for path in entries:
            if not path.is_file() or path.name.endswith((_META_SUFFIX, _TMP_SUFFIX)):
                continue
            try:
                yield self._describe(path)
            except FileNotFoundError:
                # Deleted concurrently by a reader or another sweeper.
                continue

    def ping(self) -> None:
        if not self._root.is_dir() or not os.access(self._root, os.W_OK):
            raise BlobStoreError(f"Blob directory not writable: {self._root}")

    def _describe(self, path: Path) -> StoredBlob:
        stat = path.stat()
        created_at: datetime | None = datetime.fromtimestamp(stat.st_mtime, tz=UTC)
        expires_at: datetime | None = None
        try:
            meta = json.loads(self._meta_path(path).read_text("utf-8"))
            created_at = datetime.fromisoformat(meta["created_at"])
            expires_at = datetime.fromisoformat(meta["expires_at"])
        except (OSError, ValueError, KeyError, TypeError):
            pass
        return StoredBlob(
            storage_key=path.name,
            size_bytes=stat.st_size,
            created_at=created_at,
            expires_at=expires_at,
        )


def _atomic_write(path: Path, data: bytes) -> None:
    tmp_path = path.with_name(path.name + _TMP_SUFFIX)
    with open(tmp_path, "wb") as f:
        f.write(data)
    os.replace(tmp_path, path)
