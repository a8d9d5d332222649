from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from vanish.storage.base import BlobNotFoundError, BlobStore, BlobStoreError, StoredBlob

_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}


@dataclass(frozen=True)
class S3Config:
    endpoint_url: str
    access_key_id: str
    secret_access_key: str
    bucket: str


class S3BlobStore(BlobStore):
    def __init__(self, config: S3Config, *, client=None) -> None:  # type: ignore[no-untyped-def]
        self._bucket = config.bucket
        self._client = client or boto3.client(
            "s3",
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
        )

    def put_bytes(
        self,
        *,
        key: str,
        data: bytes,
        created_at: datetime,
        expires_at: datetime,
    ) -> StoredBlob:
        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=data,
                ContentType="application/octet-stream",
                Metadata={
                    "created-at": created_at.isoformat(),
                    "expires-at": expires_at.isoformat(),
                },
            )
        except (BotoCoreError, ClientError) as e:
            raise BlobStoreError(str(e)) from e
        return StoredBlob(
            storage_key=key,
            size_bytes=len(data),
            created_at=created_at,
            expires_at=expires_at,
        )

    def get_bytes(self, *, key: str) -> bytes:
        try:
            res = self._client.get_object(Bucket=self._bucket, Key=key)
            body = res["Body"].read()
            if not isinstance(body, (bytes, bytearray)):
                raise BlobStoreError("S3 returned non-bytes body")
            return bytes(body)
        except ClientError as e:
            if _is_missing(e):
                raise BlobNotFoundError(key) from e
            raise BlobStoreError(str(e)) from e
        except BotoCoreError as e:
            raise BlobStoreError(str(e)) from e

    def delete(self, *, key: str) -> None:
        # S3 deletes are idempotent: a missing key is not an error.
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise BlobStoreError(str(e)) from e

    def exists(self, *, key: str) -> bool:
        try:
            self._client.head_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if _is_missing(e):
                return False
            raise BlobStoreError(str(e)) from e
        except BotoCoreError as e:
            raise BlobStoreError(str(e)) from e
        return True

    def iter_blobs(self) -> Iterator[StoredBlob]:
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self._bucket):
                for obj in page.get("Contents", []):
                    stored = self._describe(obj)
                    if stored is not None:
                        yield stored
        except (BotoCoreError, ClientError) as e:
            raise BlobStoreError(str(e)) from e

    def ping(self) -> None:
        try:
            self._client.head_bucket(Bucket=self._bucket)
        except (BotoCoreError, ClientError) as e:
            raise BlobStoreError(str(e)) from e

    def _describe(self, obj: dict) -> StoredBlob | None:
        key = str(obj["Key"])
        try:
            head = self._client.head_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if _is_missing(e):
                return None
            raise
        metadata = head.get("Metadata") or {}
        return StoredBlob(
            storage_key=key,
            size_bytes=int(obj.get("Size", 0)),
            created_at=_parse_ts(metadata.get("created-at")) or obj.get("LastModified"),
            expires_at=_parse_ts(metadata.get("expires-at")),
        )


def _is_missing(exc: ClientError) -> bool:
    code = str(exc.response.get("Error", {}).get("Code", ""))
    return code in _MISSING_CODES


def _parse_ts(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        return None
