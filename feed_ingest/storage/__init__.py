"""Storage layer for feed_ingest."""

from .database import Database, close_database, get_database, open_database
from .pool import ConnectionPool

__all__ = [
    "ConnectionPool",
    "Database",
    "close_database",
    "get_database",
    "open_database",
]
