"""Database schema DDL for the Postgres key-value store."""

KV_TABLE_DDL = """
CREATE TABLE IF NOT EXISTS kv_entries (
  key         TEXT PRIMARY KEY,
  value       JSONB NOT NULL,
  expires_at  TIMESTAMPTZ,
  created_at  TIMESTAMPTZ NOT NULL DEFAULT now(),
  updated_at  TIMESTAMPTZ NOT NULL DEFAULT now()
);

-- Index for purging expired entries
CREATE INDEX IF NOT EXISTS idx_kv_entries_expires_at
ON kv_entries (expires_at)
WHERE expires_at IS NOT NULL;
"""
