"""Base repository pattern for database operations."""

from __future__ import annotations

import sqlite3
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, List, Optional, Sequence

import aiosqlite

from core.exceptions import DatabaseError, SchemaMismatchError, TransientInfraError, is_transient_error
from database.connection import SQLitePool

SCHEMA_MARKERS: tuple[str, ...] = ("no such column", "has no column named", "no such table")
SCHEMA_REMEDIATION = (
    "Database schema is outdated for the profiles table. "
    "Restart the service to apply pending migrations (database/migrations.py) "
    "or apply them manually before retrying."
)


def translate_error(error: Exception) -> DatabaseError:
    """Map a driver error onto the store error taxonomy."""
    if isinstance(error, DatabaseError):
        return error
    message = str(error) or error.__class__.__name__
    lowered = message.lower()
    if any(marker in lowered for marker in SCHEMA_MARKERS):
        return SchemaMismatchError(message, SCHEMA_REMEDIATION)
    if is_transient_error(error):
        return TransientInfraError(message)
    return DatabaseError(message)


class BaseRepository:
    """Base repository with common database operations.

    All driver errors leave this class as ``DatabaseError`` subclasses so
    callers can tell schema drift and transient failures apart.
    """

    def __init__(self, pool: SQLitePool) -> None:
        self.pool = pool

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[aiosqlite.Connection]:
        try:
            async with self.pool.connection() as conn:
                yield conn
        except (sqlite3.Error, OSError) as e:
            raise translate_error(e) from e

    async def execute(self, query: str, params: Sequence[Any] = ()) -> int:
        """Execute a write and return the affected row count."""
        async with self._connection() as conn:
            cursor = await conn.execute(query, params)
            await conn.commit()
            return cursor.rowcount

    async def fetch_one(self, query: str, params: Sequence[Any] = ()) -> Optional[aiosqlite.Row]:
        async with self._connection() as conn:
            cursor = await conn.execute(query, params)
            return await cursor.fetchone()

    async def fetch_all(self, query: str, params: Sequence[Any] = ()) -> List[aiosqlite.Row]:
        async with self._connection() as conn:
            cursor = await conn.execute(query, params)
            return list(await cursor.fetchall())

    async def fetch_value(self, query: str, params: Sequence[Any] = ()) -> Optional[Any]:
        """Fetch a single value from a single row."""
        row = await self.fetch_one(query, params)
        return row[0] if row else None
