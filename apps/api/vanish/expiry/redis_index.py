from __future__ import annotations

import orjson
from redis import Redis
from redis.exceptions import RedisError

from vanish.expiry.base import ExpiryIndex, ExpiryIndexError, ExpiryRecord


class RedisExpiryIndex(ExpiryIndex):
    """Expiry index on Redis `SET ... EX`; eviction is native."""

    def __init__(self, client: Redis, *, key_prefix: str = "blob:") -> None:
        self._client = client
        self._prefix = key_prefix

    def _key(self, identifier: str) -> str:
        return f"{self._prefix}{identifier}"

    def put(self, identifier: str, record: ExpiryRecord, *, ttl_seconds: int) -> None:
        try:
            self._client.set(
                name=self._key(identifier),
                value=orjson.dumps(record.to_dict(), option=orjson.OPT_SORT_KEYS),
                ex=max(1, int(ttl_seconds)),
            )
        except RedisError as e:
            raise ExpiryIndexError(str(e)) from e

    def get(self, identifier: str) -> ExpiryRecord | None:
        try:
            raw = self._client.get(self._key(identifier))
        except RedisError as e:
            raise ExpiryIndexError(str(e)) from e
        if raw is None:
            return None
        try:
            return ExpiryRecord.from_dict(orjson.loads(raw))
        except (orjson.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise ExpiryIndexError(f"Corrupt expiry record for {identifier}") from e

    def delete(self, identifier: str) -> None:
        try:
            self._client.delete(self._key(identifier))
        except RedisError as e:
            raise ExpiryIndexError(str(e)) from e

    def ping(self) -> None:
        try:
            self._client.ping()
        except RedisError as e:
            raise ExpiryIndexError(str(e)) from e
