from __future__ import annotations

from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker

from vanish.core.config import get_settings


def _make_engine() -> Engine:
    url = make_url(get_settings().DATABASE_URL)
    if url.get_backend_name() == "sqlite":
        # Single-node deployments: the API threadpool and the sweeper share the file.
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return _make_engine()


@lru_cache(maxsize=1)
def get_sessionmaker() -> sessionmaker:
    # Backs the SQL expiry index only; every index call opens and closes its own session.
    return sessionmaker(bind=get_engine(), autoflush=False, expire_on_commit=False)
