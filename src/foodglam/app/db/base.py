from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import aiosqlite
from aiosqlitepool import SQLiteConnectionPool
from aiosqlitepool.exceptions import (
    PoolClosedError,
    PoolConnectionAcquireTimeoutError,
)

from foodglam.app.services.search_pipeline.exceptions import StoreUnavailable


async def run_in_transaction(conn, func, *args, **kwargs):
    """Execute the given coroutine within a transaction."""
    try:
        result = await func(*args, **kwargs)
        await conn.commit()
        return result
    except Exception:
        if conn.in_transaction:
            await conn.rollback()
        raise


def escape_like(term: str) -> str:
    """Escape ``%``, ``_`` and the escape character itself for ``LIKE ... ESCAPE '\\'``."""

    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class BaseRepository:
    """Common functionality shared by repository classes."""

    def __init__(self, pool: SQLiteConnectionPool | None):
        self.pool = pool

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """Borrow a pooled connection, reporting pool failures as unavailability."""

        if self.pool is None:
            raise StoreUnavailable("Connection pool is not initialised")
        try:
            async with self.pool.connection() as conn:
                yield conn
        except (PoolClosedError, PoolConnectionAcquireTimeoutError) as exc:
            raise StoreUnavailable(str(exc) or type(exc).__name__) from exc

    async def _run_in_transaction(self, conn, func, *args, **kwargs):
        return await run_in_transaction(conn, func, *args, **kwargs)
