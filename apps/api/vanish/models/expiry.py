from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, Index, Text, false
from sqlalchemy.orm import Mapped, mapped_column

from vanish.models.base import Base


class ExpiryEntry(Base):
    __tablename__ = "expiry_records"
    __table_args__ = (Index("expiry_records_evict_at_idx", "evict_at"),)

    identifier: Mapped[str] = mapped_column(Text, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # Emulated native TTL: rows at or past evict_at are invisible to reads.
    evict_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    has_payment: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    price_usd: Mapped[float | None] = mapped_column(Float, nullable=True)
