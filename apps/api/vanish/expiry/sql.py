from __future__ import annotations

from datetime import timedelta

from sqlalchemy import delete, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from vanish.core.clock import Clock, ensure_utc, utc_now
from vanish.expiry.base import ExpiryIndex, ExpiryIndexError, ExpiryRecord
from vanish.models.expiry import ExpiryEntry


class SqlExpiryIndex(ExpiryIndex):
    """Expiry index backed by the `expiry_records` table.

    SQL has no per-row TTL, so reads filter on `evict_at` and
    `purge_expired` (run by the sweeper) reclaims the rows physically.
    """

    def __init__(self, session_factory: sessionmaker, *, clock: Clock = utc_now) -> None:
        self._session_factory = session_factory
        self._clock = clock

    def put(self, identifier: str, record: ExpiryRecord, *, ttl_seconds: int) -> None:
        entry = ExpiryEntry(
            identifier=identifier,
            created_at=record.created_at,
            expires_at=record.expires_at,
            evict_at=self._clock() + timedelta(seconds=ttl_seconds),
            has_payment=record.has_payment,
            price_usd=record.price_usd,
        )
        try:
            with self._session_factory() as session:
                session.merge(entry)
                session.commit()
        except SQLAlchemyError as e:
            raise ExpiryIndexError(str(e)) from e

    def get(self, identifier: str) -> ExpiryRecord | None:
        try:
            with self._session_factory() as session:
                entry = (
                    session.execute(
                        select(ExpiryEntry).where(
                            ExpiryEntry.identifier == identifier,
                            ExpiryEntry.evict_at > self._clock(),
                        )
                    )
                    .scalars()
                    .first()
                )
        except SQLAlchemyError as e:
            raise ExpiryIndexError(str(e)) from e
        if entry is None:
            return None
        return ExpiryRecord(
            created_at=ensure_utc(entry.created_at),
            expires_at=ensure_utc(entry.expires_at),
            has_payment=entry.has_payment,
            price_usd=entry.price_usd,
        )

    def delete(self, identifier: str) -> None:
        try:
            with self._session_factory() as session:
                session.execute(delete(ExpiryEntry).where(ExpiryEntry.identifier == identifier))
                session.commit()
        except SQLAlchemyError as e:
            raise ExpiryIndexError(str(e)) from e

    def purge_expired(self) -> int:
        try:
            with self._session_factory() as session:
                result = session.execute(
                    delete(ExpiryEntry).where(ExpiryEntry.evict_at <= self._clock())
                )
                session.commit()
        except SQLAlchemyError as e:
            raise ExpiryIndexError(str(e)) from e
        return int(result.rowcount or 0)

    def ping(self) -> None:
        try:
            with self._session_factory() as session:
                session.execute(text("select 1"))
        except SQLAlchemyError as e:
            raise ExpiryIndexError(str(e)) from e
