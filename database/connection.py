"""SQLite connection pool shared by the dispatcher and the handle feed."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, List

import aiosqlite

from core.logger import get_logger

logger = get_logger(__name__)


class SQLitePool:
    """Fixed-size pool of aiosqlite connections.

    Connections are handed out through an ``asyncio.Queue`` so concurrent
    readers (e.g. the aggregate counts behind ``/whois``) each get their own
    connection while the handle feed keeps running.
    """

    def __init__(self, database_path: str, pool_size: int = 5, busy_timeout_ms: int = 5000) -> None:
        self.database_path = database_path
        self.pool_size = max(1, pool_size)
        self.busy_timeout_ms = busy_timeout_ms
        self._connections: List[aiosqlite.Connection] = []
        self._idle: "asyncio.Queue[aiosqlite.Connection]" = asyncio.Queue()
        self._initialized = False
        self._init_lock = asyncio.Lock()

    @property
    def size(self) -> int:
        return len(self._connections)

    async def init_pool(self) -> None:
        async with self._init_lock:
            if self._initialized:
                return

            if self.database_path != ":memory:":
                Path(self.database_path).parent.mkdir(parents=True, exist_ok=True)

            for _ in range(self.pool_size):
                conn = await aiosqlite.connect(self.database_path)
                conn.row_factory = aiosqlite.Row
                await self._apply_pragma(conn)
                self._connections.append(conn)
                self._idle.put_nowait(conn)

            self._initialized = True
            logger.info(f"SQLite pool ready: {self.database_path} ({self.pool_size} connections)")

    async def close(self) -> None:
        while self._connections:
            conn = self._connections.pop()
            await conn.close()
        self._idle = asyncio.Queue()
        self._initialized = False

    async def _apply_pragma(self, conn: aiosqlite.Connection) -> None:
        await conn.execute("PRAGMA journal_mode=WAL")
        await conn.execute("PRAGMA synchronous=NORMAL")
        await conn.execute("PRAGMA foreign_keys=ON")
        await conn.execute("PRAGMA temp_store=MEMORY")
        await conn.execute(f"PRAGMA busy_timeout={self.busy_timeout_ms}")

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        if not self._initialized:
            await self.init_pool()
        conn = await self._idle.get()
        try:
            yield conn
        finally:
            self._idle.put_nowait(conn)


async def init_db_pool(database_path: str, pool_size: int, busy_timeout_ms: int) -> SQLitePool:
    pool = SQLitePool(database_path=database_path, pool_size=pool_size, busy_timeout_ms=busy_timeout_ms)
    await pool.init_pool()
    return pool
