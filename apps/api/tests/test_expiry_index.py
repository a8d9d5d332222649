from __future__ import annotations

from datetime import timedelta

import orjson
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from vanish.expiry.base import ExpiryIndexError, ExpiryRecord
from vanish.expiry.memory import MemoryExpiryIndex
from vanish.expiry.redis_index import RedisExpiryIndex
from vanish.expiry.sql import SqlExpiryIndex
from vanish.models import Base


def _record(clock, *, hours: int = 1, price: float | None = None) -> ExpiryRecord:
    now = clock()
    return ExpiryRecord(
        created_at=now,
        expires_at=now + timedelta(hours=hours),
        has_payment=price is not None,
        price_usd=price,
    )


class StubRedis:
    """Just enough of redis.Redis for the index: values plus the last EX seen."""

    def __init__(self) -> None:
        self.values: dict[str, bytes] = {}
        self.ttls: dict[str, int] = {}
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            raise RedisConnectionError("connection refused")

    def set(self, name: str, value: bytes, ex: int | None = None) -> bool:
        self._check()
        self.values[name] = value
        if ex is not None:
            self.ttls[name] = ex
        return True

    def get(self, name: str) -> bytes | None:
        self._check()
        return self.values.get(name)

    def delete(self, name: str) -> int:
        self._check()
        self.ttls.pop(name, None)
        return 1 if self.values.pop(name, None) is not None else 0

    def ping(self) -> bool:
        self._check()
        return True


@pytest.fixture()
def sql_index(clock) -> SqlExpiryIndex:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return SqlExpiryIndex(sessionmaker(bind=engine, expire_on_commit=False), clock=clock)


@pytest.fixture(params=["memory", "sql"])
def ttl_index(request, clock):
    if request.param == "memory":
        return MemoryExpiryIndex(clock=clock)
    return request.getfixturevalue("sql_index")


def test_put_get_delete(ttl_index, clock) -> None:
    record = _record(clock, price=2.5)
    ttl_index.put("blob-1", record, ttl_seconds=3600)

    assert ttl_index.get("blob-1") == record
    ttl_index.delete("blob-1")
    assert ttl_index.get("blob-1") is None
    # Idempotent.
    ttl_index.delete("blob-1")


def test_missing_entry_is_none(ttl_index) -> None:
    assert ttl_index.get("never-written") is None


def test_entry_vanishes_once_ttl_elapses(ttl_index, clock) -> None:
    ttl_index.put("blob-1", _record(clock), ttl_seconds=3600)

    clock.advance(minutes=59)
    assert ttl_index.get("blob-1") is not None

    clock.advance(minutes=1)
    assert ttl_index.get("blob-1") is None


def test_put_overwrites(ttl_index, clock) -> None:
    ttl_index.put("blob-1", _record(clock), ttl_seconds=3600)
    updated = _record(clock, hours=2, price=1.0)
    ttl_index.put("blob-1", updated, ttl_seconds=7200)
    assert ttl_index.get("blob-1") == updated


def test_purge_expired_counts_removed_entries(ttl_index, clock) -> None:
    ttl_index.put("short", _record(clock), ttl_seconds=60)
    ttl_index.put("long", _record(clock), ttl_seconds=3600)

    clock.advance(minutes=5)
    assert ttl_index.purge_expired() == 1
    assert ttl_index.get("long") is not None
    assert ttl_index.purge_expired() == 0


def test_sql_index_ping(sql_index) -> None:
    sql_index.ping()


def test_sql_index_returns_aware_datetimes(sql_index, clock) -> None:
    sql_index.put("blob-1", _record(clock), ttl_seconds=3600)
    stored = sql_index.get("blob-1")
    assert stored is not None
    assert stored.expires_at.tzinfo is not None
    assert stored.expires_at == clock() + timedelta(hours=1)


def test_redis_index_uses_native_ttl(clock) -> None:
    redis = StubRedis()
    index = RedisExpiryIndex(redis, key_prefix="blob:")
    record = _record(clock, hours=3, price=0.25)

    index.put("abc", record, ttl_seconds=3 * 3600)

    assert redis.ttls["blob:abc"] == 3 * 3600
    assert orjson.loads(redis.values["blob:abc"])["price_usd"] == 0.25
    assert index.get("abc") == record

    index.delete("abc")
    assert index.get("abc") is None


def test_redis_index_rejects_corrupt_values() -> None:
    redis = StubRedis()
    redis.values["blob:abc"] = b"not json"
    with pytest.raises(ExpiryIndexError):
        RedisExpiryIndex(redis).get("abc")


def test_redis_errors_become_index_errors(clock) -> None:
    redis = StubRedis()
    redis.fail = True
    index = RedisExpiryIndex(redis)

    with pytest.raises(ExpiryIndexError):
        index.put("abc", _record(clock), ttl_seconds=60)
    with pytest.raises(ExpiryIndexError):
        index.get("abc")
    with pytest.raises(ExpiryIndexError):
        index.ping()


def test_factory_builds_sql_index_from_settings(monkeypatch, tmp_path, clock) -> None:
    from vanish.core.config import get_settings
    from vanish.db.session import get_engine, get_sessionmaker
    from vanish.expiry.factory import build_expiry_index

    monkeypatch.setenv("EXPIRY_INDEX", "sql")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'index.db'}")
    get_settings.cache_clear()
    get_engine.cache_clear()
    get_sessionmaker.cache_clear()
    try:
        Base.metadata.create_all(get_engine())
        index = build_expiry_index()
        assert isinstance(index, SqlExpiryIndex)

        record = _record(clock)
        index.put("blob-1", record, ttl_seconds=3600)
        assert index.get("blob-1") == record
        index.ping()
    finally:
        get_engine().dispose()
        get_engine.cache_clear()
        get_sessionmaker.cache_clear()
