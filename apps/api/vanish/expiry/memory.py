from __future__ import annotations

import threading
from datetime import datetime, timedelta

from vanish.core.clock import Clock, utc_now
from vanish.expiry.base import ExpiryIndex, ExpiryRecord


class MemoryExpiryIndex(ExpiryIndex):
    def __init__(self, *, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[ExpiryRecord, datetime]] = {}

    def put(self, identifier: str, record: ExpiryRecord, *, ttl_seconds: int) -> None:
        evict_at = self._clock() + timedelta(seconds=ttl_seconds)
        with self._lock:
            self._entries[identifier] = (record, evict_at)

    def get(self, identifier: str) -> ExpiryRecord | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(identifier)
            if entry is None:
                return None
            record, evict_at = entry
            if evict_at <= now:
                del self._entries[identifier]
                return None
            return record

    def delete(self, identifier: str) -> None:
        with self._lock:
            self._entries.pop(identifier, None)

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            stale = [key for key, (_, evict_at) in self._entries.items() if evict_at <= now]
            for key in stale:
                del self._entries[key]
        return len(stale)

    def __contains__(self, identifier: object) -> bool:
        with self._lock:
            return identifier in self._entries
