"""libsql access shared by every taskmind store.

The ``libsql`` driver is synchronous, so each call is pushed onto a worker
thread with ``asyncio.to_thread()``. Where a connection points is decided per
call:

- an explicit path (tests, or a dedicated vector index file)
- ``TURSO_DATABASE_URL`` + ``TURSO_AUTH_TOKEN`` for hosted Turso
- ``database_path`` otherwise

Stores subclass ``TableStore``: they declare their ``CREATE TABLE IF NOT
EXISTS`` statements and open one short-lived connection per operation.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import libsql

from taskmind.config import settings

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

# Milliseconds a local writer waits on a locked database file.
BUSY_TIMEOUT_MS = 5000


class _AsyncCursor:
    """Awaitable view of a libsql cursor."""

    def __init__(self, cursor: Any) -> None:
        self._cursor = cursor

    async def fetchone(self) -> tuple | None:
        return await asyncio.to_thread(self._cursor.fetchone)

    async def fetchall(self) -> list[tuple]:
        return await asyncio.to_thread(self._cursor.fetchall)

    @property
    def rowcount(self) -> int:
        return self._cursor.rowcount


class _AsyncConnection:
    """Awaitable view of a libsql connection."""

    def __init__(self, conn: Any) -> None:
        self._conn = conn

    async def execute(self, sql: str, params: tuple = ()) -> _AsyncCursor:
        return _AsyncCursor(await asyncio.to_thread(self._conn.execute, sql, params))

    async def commit(self) -> None:
        await asyncio.to_thread(self._conn.commit)

    async def close(self) -> None:
        await asyncio.to_thread(self._conn.close)


def _open_file(path: Path) -> Any:
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = libsql.connect(str(path))
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
    return conn


async def get_connection(local_path_override: Path | None = None) -> _AsyncConnection:
    """Open a connection to *local_path_override*, Turso, or ``database_path``."""
    if local_path_override:
        return _AsyncConnection(await asyncio.to_thread(_open_file, local_path_override))

    if settings.turso_database_url:
        conn = await asyncio.to_thread(
            libsql.connect,
            database=settings.turso_database_url,
            auth_token=settings.turso_auth_token,
        )
        return _AsyncConnection(conn)

    return _AsyncConnection(await asyncio.to_thread(_open_file, settings.database_path))


class TableStore:
    """Base for stores that own one or more tables.

    Subclasses set ``schema`` to their ``CREATE ... IF NOT EXISTS``
    statements. The schema runs on the first connection a store instance
    opens. Pass an explicit *db_path* for test isolation (e.g.
    ``tmp_path / "test.db"``).
    """

    schema: tuple[str, ...] = ()

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path
        self._initialised = False

    async def _connect(self) -> _AsyncConnection:
        db = await get_connection(local_path_override=self._db_path)
        if not self._initialised:
            for statement in self.schema:
                await db.execute(statement)
            await db.commit()
            self._initialised = True
            logger.debug("%s schema ready", type(self).__name__)
        return db
