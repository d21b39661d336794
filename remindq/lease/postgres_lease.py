"""
Lease backed by a PostgreSQL session-level advisory lock.

The lock lives on a dedicated pooled connection for the whole critical
section. If the process dies the server closes the session and drops the
lock, so no explicit expiry is needed.
"""

import logging
from typing import Any, Optional

import psycopg2

from remindq.db.connection import get_pool
from remindq.errors import StoreUnavailable
from remindq.lease.base import Lease, LeaseHandle

logger = logging.getLogger(__name__)


class PostgresLease(Lease):
    """Advisory-lock lease keyed by ``hashtext(resource)``."""

    def _try_acquire(self, resource: str, token: str) -> Optional[Any]:
        try:
            pool = get_pool()
            conn = pool.getconn()
        except psycopg2.Error as e:
            raise StoreUnavailable(f"Cannot reach database for lock '{resource}': {e}") from e

        try:
            conn.autocommit = True
            with conn.cursor() as cursor:
                cursor.execute("SELECT pg_try_advisory_lock(hashtext(%s));", (resource,))
                granted = cursor.fetchone()[0]
        except psycopg2.Error as e:
            pool.putconn(conn, close=True)
            raise StoreUnavailable(f"Advisory lock query failed for '{resource}': {e}") from e

        if not granted:
            conn.autocommit = False
            pool.putconn(conn)
            return None
        return conn

    def _release(self, handle: LeaseHandle) -> None:
        pool = get_pool()
        conn = handle.state
        try:
            with conn.cursor() as cursor:
                cursor.execute("SELECT pg_advisory_unlock(hashtext(%s));", (handle.resource,))
            conn.autocommit = False
            pool.putconn(conn)
        except psycopg2.Error as e:
            # Closing the session drops any advisory lock it still holds.
            logger.warning(f"Advisory unlock failed for '{handle.resource}', closing session: {e}")
            pool.putconn(conn, close=True)
