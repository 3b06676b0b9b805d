"""Idempotent DDL for the ``visualizations`` table."""

from __future__ import annotations

from api.utils.debug import print__storage_debug
from storage.database.connection import get_direct_connection


async def setup_visualizations_table():
    """Create the ``visualizations`` table and its indexes if they do not exist.

    Safe to call on every startup: ``IF NOT EXISTS`` leaves an existing table
    and its data untouched. Errors are logged and re-raised.
    """
    print__storage_debug("🏗️ TABLE SETUP: ensuring visualizations table exists")
    try:
        async with get_direct_connection() as conn:
            await conn.execute(
                """
                CREATE TABLE IF NOT EXISTS visualizations (
                    id VARCHAR(64) PRIMARY KEY,
                    owner_id VARCHAR(255) NOT NULL,
                    kind VARCHAR(32) NOT NULL,
                    title VARCHAR(200) NOT NULL,
                    payload JSONB NOT NULL,
                    history JSONB NOT NULL DEFAULT '[]'::jsonb,
                    metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
                    is_public BOOLEAN NOT NULL DEFAULT FALSE,
                    share_id VARCHAR(32) UNIQUE,
                    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                );
            """
            )
            await conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_visualizations_owner_updated
                ON visualizations(owner_id, updated_at DESC);
            """
            )
            await conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_visualizations_share_id
                ON visualizations(share_id) WHERE share_id IS NOT NULL;
            """
            )
            await conn.commit()
        print__storage_debug("✅ TABLE SETUP: visualizations table ready")
    except Exception as exc:
        print__storage_debug(f"❌ TABLE SETUP: failed: {type(exc).__name__}: {exc}")
        raise
