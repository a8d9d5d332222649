from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

# Returns an aware UTC datetime. Injected wherever expiry is decided so tests
# can move time without sleeping.
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back out.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def isoformat_z(value: datetime) -> str:
    # Same shape as JavaScript's Date.toISOString(): millisecond precision, "Z".
    return ensure_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")
