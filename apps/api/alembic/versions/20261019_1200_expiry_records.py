"""Expiry index table

Revision ID: 20261019_1200
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op

revision = "20261019_1200"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute(
        """
CREATE TABLE IF NOT EXISTS expiry_records (
  identifier text PRIMARY KEY,
  created_at timestamptz NOT NULL,
  expires_at timestamptz NOT NULL,
  evict_at timestamptz NOT NULL,
  has_payment boolean NOT NULL DEFAULT false,
  price_usd double precision NULL,
  CHECK (price_usd IS NULL OR price_usd > 0),
  CHECK (evict_at >= created_at)
);
"""
    )
    op.execute(
        """
CREATE INDEX IF NOT EXISTS expiry_records_evict_at_idx
  ON expiry_records (evict_at);
"""
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS expiry_records;")
