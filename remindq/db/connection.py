"""
PostgreSQL pool shared by the postgres store and the advisory-lock lease.

A ``cron`` or ``put`` against postgres holds two connections at once: the
lease pins one for the whole critical section and the store borrows another
for each load and save. The pool is created on first use from the
``database`` config section, falling back to ``POSTGRES_*`` variables.
"""

import atexit
import logging
import os
import threading
from contextlib import contextmanager
from typing import Any, Dict, Generator

import psycopg2
import psycopg2.pool

from remindq.errors import ConfigError

logger = logging.getLogger(__name__)

# Lease connection + store connection, with headroom for watch mode overlap
POOL_MAX = 4

_pool = None
_pool_lock = threading.Lock()


def _connect_kwargs() -> Dict[str, Any]:
    from remindq.config.config_loader import get_config_loader

    cfg = get_config_loader().get_database_config()
    kwargs = {
        "database": cfg.get("db_name") or os.getenv("POSTGRES_DB"),
        "user": cfg.get("user") or os.getenv("POSTGRES_USER"),
        "password": cfg.get("password") or os.getenv("POSTGRES_PASSWORD"),
        "host": cfg.get("host") or os.getenv("POSTGRES_HOST", "localhost"),
        "port": cfg.get("port") or os.getenv("POSTGRES_PORT", "5432"),
    }
    missing = [k for k in ("database", "user", "password") if not kwargs[k]]
    if missing:
        raise ConfigError(
            f"Database credentials missing ({', '.join(missing)}): set database.db_name, "
            "database.user and database.password in config.yaml or POSTGRES_DB, "
            "POSTGRES_USER and POSTGRES_PASSWORD"
        )
    return kwargs


def get_pool() -> psycopg2.pool.ThreadedConnectionPool:
    """Return the process-wide pool, creating it on first call.

    Raises:
        ConfigError: credentials are not configured.
        psycopg2.OperationalError: the server cannot be reached.
    """
    global _pool
    if _pool is None:
        with _pool_lock:
            if _pool is None:
                kwargs = _connect_kwargs()
                _pool = psycopg2.pool.ThreadedConnectionPool(minconn=1, maxconn=POOL_MAX, **kwargs)
                logger.info(f"Reminder store database '{kwargs['database']}' at {kwargs['host']}:{kwargs['port']}")
    return _pool


@atexit.register
def _close_pool() -> None:
    global _pool
    if _pool is not None:
        try:
            _pool.closeall()
        except psycopg2.Error as e:
            logger.debug(f"Closing connection pool failed: {e}")
        _pool = None


@contextmanager
def get_db_connection() -> Generator[psycopg2.extensions.connection, None, None]:
    """Borrow a pooled connection; one that failed mid-use is discarded, not reused."""
    pool = get_pool()
    conn = pool.getconn()
    broken = False
    try:
        yield conn
    except psycopg2.OperationalError:
        broken = True
        raise
    finally:
        pool.putconn(conn, close=broken)


@contextmanager
def get_db_cursor(
    conn: psycopg2.extensions.connection, commit: bool = False
) -> Generator[psycopg2.extensions.cursor, None, None]:
    """Cursor on *conn*; commits on success when *commit* is set, rolls back on error."""
    with conn.cursor() as cursor:
        try:
            yield cursor
            if commit:
                conn.commit()
        except psycopg2.Error as e:
            logger.warning(f"Rolling back: {e}")
            conn.rollback()
            raise
