"""Classification of database failures by PostgreSQL SQLSTATE."""

from __future__ import annotations

from sqlalchemy.exc import DBAPIError

UNDEFINED_TABLE = "42P01"
UNDEFINED_COLUMN = "42703"
UNIQUE_VIOLATION = "23505"

SCHEMA_MISMATCH_STATES = frozenset({UNDEFINED_TABLE, UNDEFINED_COLUMN})


class StorageError(Exception):
    """Database or transport failure; ``details`` carries the underlying cause."""

    def __init__(self, message: str, *, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


def sqlstate_of(exc: BaseException) -> str | None:
    # asyncpg errors reach us wrapped twice: DBAPIError.orig is the adapted
    # driver error, whose __cause__ is the native asyncpg exception.
    candidates: list[BaseException | None] = [exc]
    if isinstance(exc, DBAPIError):
        candidates.append(exc.orig)
        if exc.orig is not None:
            candidates.append(exc.orig.__cause__)
    for candidate in candidates:
        if candidate is None:
            continue
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if isinstance(code, str) and code:
            return code
    return None


def is_schema_mismatch(exc: BaseException) -> bool:
    return sqlstate_of(exc) in SCHEMA_MISMATCH_STATES


def is_unique_violation(exc: BaseException) -> bool:
    return sqlstate_of(exc) == UNIQUE_VIOLATION
