from __future__ import annotations

from redis import Redis

from vanish.core.config import get_settings
from vanish.db.session import get_sessionmaker
from vanish.expiry.base import ExpiryIndex
from vanish.expiry.memory import MemoryExpiryIndex
from vanish.expiry.redis_index import RedisExpiryIndex
from vanish.expiry.sql import SqlExpiryIndex


def build_expiry_index() -> ExpiryIndex:
    settings = get_settings()
    if settings.EXPIRY_INDEX == "sql":
        return SqlExpiryIndex(get_sessionmaker())
    if settings.EXPIRY_INDEX == "redis":
        return RedisExpiryIndex(
            Redis.from_url(settings.REDIS_URL),
            key_prefix=settings.REDIS_KEY_PREFIX,
        )
    if settings.EXPIRY_INDEX == "memory":
        return MemoryExpiryIndex()
    raise ValueError(f"Unsupported EXPIRY_INDEX: {settings.EXPIRY_INDEX}")
