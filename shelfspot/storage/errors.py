"""Store error taxonomy.

Repositories never leak driver exceptions: every asyncpg failure is
translated into a ``StoreError`` carrying one ``StoreErrorKind``. Services
match on the kind and map it to the domain errors in ``shelfspot.errors``.
"""

import enum
from collections.abc import Iterator
from contextlib import contextmanager

import asyncpg


class StoreErrorKind(enum.Enum):
    """Closed set of failure kinds a store can report."""

    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INVALID_REFERENCE = "invalid_reference"
    UNAVAILABLE = "unavailable"


class StoreError(Exception):
    """Raised by repositories and ``Database`` helpers."""

    def __init__(self, kind: StoreErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind

    def __repr__(self) -> str:
        return f"StoreError({self.kind.value}, {str(self)!r})"


@contextmanager
def translate_store_errors() -> Iterator[None]:
    """Re-raise asyncpg exceptions as ``StoreError``.

    Errors that are neither constraint violations nor connectivity
    problems (syntax errors, programming bugs) propagate unchanged.
    """
    try:
        yield
    except asyncpg.UniqueViolationError as e:
        raise StoreError(StoreErrorKind.CONFLICT, str(e)) from e
    except asyncpg.ForeignKeyViolationError as e:
        raise StoreError(StoreErrorKind.INVALID_REFERENCE, str(e)) from e
    except (
        asyncpg.PostgresConnectionError,
        asyncpg.InterfaceError,
        ConnectionError,
        OSError,
    ) as e:
        raise StoreError(StoreErrorKind.UNAVAILABLE, str(e)) from e
