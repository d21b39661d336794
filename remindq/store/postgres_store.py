"""
Blob store backed by a PostgreSQL table.

Blobs live in ``remindq_blobs`` keyed by name, reusing the shared connection
pool from ``remindq.db.connection``.
"""

import logging
from typing import Optional

import psycopg2

from remindq.db.connection import get_db_connection, get_db_cursor
from remindq.errors import StoreUnavailable
from remindq.store.base import BlobStore

logger = logging.getLogger(__name__)


def init_blob_schema() -> None:
    """Create the remindq_blobs table if it doesn't exist."""
    with get_db_connection() as conn:
        with get_db_cursor(conn, commit=True) as cursor:
            cursor.execute("""
                SELECT EXISTS (
                    SELECT 1 FROM information_schema.tables
                    WHERE table_name = 'remindq_blobs'
                );
            """)
            table_exists = cursor.fetchone()[0]

            if not table_exists:
                logger.info("Creating remindq_blobs table")
                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS remindq_blobs (
                        name TEXT PRIMARY KEY,
                        body TEXT NOT NULL,
                        updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
                    );
                """)
                logger.info("remindq_blobs table created successfully")


class PostgresBlobStore(BlobStore):
    """Whole-blob get/upsert against ``remindq_blobs``."""

    def __init__(self):
        self._schema_ready = False

    def _ensure_schema(self) -> None:
        if not self._schema_ready:
            init_blob_schema()
            self._schema_ready = True

    def get_blob(self, name: str) -> Optional[str]:
        try:
            self._ensure_schema()
            with get_db_connection() as conn:
                with get_db_cursor(conn) as cursor:
                    cursor.execute("SELECT body FROM remindq_blobs WHERE name = %s;", (name,))
                    row = cursor.fetchone()
                conn.rollback()
        except psycopg2.Error as e:
            logger.error(f"Database error loading blob '{name}': {e}")
            raise StoreUnavailable(f"Cannot load blob '{name}': {e}") from e
        return row[0] if row else None

    def put_blob(self, name: str, body: str) -> None:
        sql = """
            INSERT INTO remindq_blobs (name, body, updated_at)
            VALUES (%s, %s, CURRENT_TIMESTAMP)
            ON CONFLICT (name) DO UPDATE
            SET body = EXCLUDED.body,
                updated_at = EXCLUDED.updated_at;
        """
        try:
            self._ensure_schema()
            with get_db_connection() as conn:
                with get_db_cursor(conn, commit=True) as cursor:
                    cursor.execute(sql, (name, body))
        except psycopg2.Error as e:
            logger.error(f"Database error saving blob '{name}': {e}")
            raise StoreUnavailable(f"Cannot save blob '{name}': {e}") from e
