from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from vanish.core.clock import ensure_utc


@dataclass(frozen=True)
class ExpiryRecord:
    created_at: datetime
    expires_at: datetime
    has_payment: bool = False
    price_usd: float | None = None

    def to_dict(self) -> dict:
        return {
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "has_payment": self.has_payment,
            "price_usd": self.price_usd,
        }

    @classmethod
    def from_dict(cls, raw: dict) -> ExpiryRecord:
        price = raw.get("price_usd")
        return cls(
            created_at=ensure_utc(datetime.fromisoformat(raw["created_at"])),
            expires_at=ensure_utc(datetime.fromisoformat(raw["expires_at"])),
            has_payment=bool(raw.get("has_payment", False)),
            price_usd=float(price) if price is not None else None,
        )


class ExpiryIndexError(RuntimeError):
    pass


class ExpiryIndex:
    """Small-value store whose entries disappear once their TTL elapses.

    This is the source of truth for whether a blob is alive and which policy
    applies to it. Implementations must never return an entry past its TTL,
    whether or not it has been physically evicted yet.
    """

    def put(self, identifier: str, record: ExpiryRecord, *, ttl_seconds: int) -> None:  # pragma: no cover
        raise NotImplementedError

    def get(self, identifier: str) -> ExpiryRecord | None:  # pragma: no cover
        raise NotImplementedError

    def delete(self, identifier: str) -> None:  # pragma: no cover
        raise NotImplementedError

    def purge_expired(self) -> int:
        """Physically drop entries past their TTL; returns how many went."""
        return 0

    def ping(self) -> None:
        return None
