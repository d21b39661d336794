"""
PostgreSQL connection pool shared by the postgres store and lease backends.
"""

from .connection import get_db_connection, get_db_cursor, get_pool

__all__ = ["get_db_connection", "get_db_cursor", "get_pool"]
