"""immutable predictions ledger and provider cache

Revision ID: 0001
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""
from alembic import op


revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS immutable_predictions (
          fixture_id BIGINT PRIMARY KEY,
          lambda_home NUMERIC(10,4) NOT NULL,
          lambda_away NUMERIC(10,4) NOT NULL,
          market VARCHAR(64) NOT NULL,
          label VARCHAR(200) NOT NULL,
          p_model NUMERIC(10,4) NOT NULL,
          odds NUMERIC(10,3) NOT NULL,
          ev_adjusted NUMERIC(10,4) NOT NULL,
          confidence INTEGER NOT NULL,
          best_bookmaker VARCHAR(64),
          published_at TIMESTAMPTZ NOT NULL,
          checksum CHAR(64) NOT NULL,
          is_frozen BOOLEAN NOT NULL DEFAULT false,
          result VARCHAR(8),
          profit_loss NUMERIC(10,3),
          frozen_at TIMESTAMPTZ
        )
        """
    )
    op.execute(
        """
        CREATE INDEX IF NOT EXISTS ix_immutable_predictions_pending
        ON immutable_predictions(fixture_id) WHERE is_frozen = false
        """
    )
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS api_cache (
          cache_key VARCHAR(64) PRIMARY KEY,
          payload JSONB,
          expires_at TIMESTAMPTZ NOT NULL
        )
        """
    )
    op.execute("CREATE INDEX IF NOT EXISTS ix_api_cache_expires_at ON api_cache(expires_at)")


def downgrade():
    op.execute("DROP TABLE IF EXISTS api_cache")
    op.execute("DROP TABLE IF EXISTS immutable_predictions")
