"""Tests for the async libsql connection wrapper."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from taskmind.db import TableStore, _AsyncConnection, get_connection

pytestmark = pytest.mark.usefixtures("_no_turso")


async def test_override_path_creates_parent_dirs(tmp_path: Path):
    db_path = tmp_path / "nested" / "vectors.db"
    conn = await get_connection(local_path_override=db_path)
    assert isinstance(conn, _AsyncConnection)
    assert db_path.parent.exists()
    await conn.close()


async def test_local_connection_uses_wal(tmp_path: Path):
    conn = await get_connection(local_path_override=tmp_path / "test.db")
    cursor = await conn.execute("PRAGMA journal_mode")
    row = await cursor.fetchone()
    assert row[0].lower() == "wal"
    await conn.close()


async def test_falls_back_to_database_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    db_path = tmp_path / "data" / "taskmind.db"
    monkeypatch.setattr("taskmind.config.settings.database_path", db_path)
    conn = await get_connection()
    await conn.execute("CREATE TABLE t (id INTEGER PRIMARY KEY)")
    await conn.commit()
    await conn.close()
    assert db_path.exists()


async def test_turso_url_opens_remote(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr("taskmind.config.settings.turso_database_url", "libsql://x.turso.io")
    monkeypatch.setattr("taskmind.config.settings.turso_auth_token", "tok")
    fake = MagicMock()
    with patch("taskmind.db.libsql.connect", return_value=fake) as connect:
        conn = await get_connection()

    connect.assert_called_once_with(database="libsql://x.turso.io", auth_token="tok")
    assert isinstance(conn, _AsyncConnection)


async def test_round_trip_and_rowcount(tmp_path: Path):
    conn = await get_connection(local_path_override=tmp_path / "test.db")
    await conn.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, title TEXT)")
    await conn.execute("INSERT INTO t (title) VALUES (?)", ("pay invoice",))
    await conn.execute("INSERT INTO t (title) VALUES (?)", ("call Miller",))
    await conn.commit()

    cursor = await conn.execute("SELECT title FROM t ORDER BY id")
    assert await cursor.fetchall() == [("pay invoice",), ("call Miller",)]

    cursor = await conn.execute("SELECT title FROM t WHERE id = 999")
    assert await cursor.fetchone() is None

    cursor = await conn.execute("UPDATE t SET title = 'done'")
    assert cursor.rowcount == 2
    await conn.close()


class _NotesStore(TableStore):
    schema = (
        "CREATE TABLE IF NOT EXISTS notes (id INTEGER PRIMARY KEY, body TEXT)",
        "CREATE INDEX IF NOT EXISTS idx_notes_body ON notes(body)",
    )


async def test_table_store_creates_schema_once(tmp_path: Path):
    store = _NotesStore(db_path=tmp_path / "test.db")
    assert store._initialised is False

    db = await store._connect()
    await db.execute("INSERT INTO notes (body) VALUES (?)", ("call Miller",))
    await db.commit()
    await db.close()
    assert store._initialised is True

    with patch.object(_AsyncConnection, "execute") as execute:
        db = await store._connect()
        execute.assert_not_called()
    await db.close()

    db = await store._connect()
    cursor = await db.execute("SELECT body FROM notes")
    assert await cursor.fetchall() == [("call Miller",)]
    await db.close()
