"""Storage layer: connection pool, schema and store error taxonomy."""

from shelfspot.storage.database import Database, close_database, get_database
from shelfspot.storage.errors import StoreError, StoreErrorKind

__all__ = [
    "Database",
    "StoreError",
    "StoreErrorKind",
    "close_database",
    "get_database",
]
