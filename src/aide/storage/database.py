from __future__ import annotations

import asyncio
import sqlite3
import threading
from pathlib import Path
from typing import Any, Sequence

SCHEMA_PATH = Path(__file__).with_name("schema.sql")


class Database:
    """SQLite client shared by the stores.

    Calls are serialized on one connection and executed on a worker thread so
    the event loop is never blocked by disk I/O.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = str(path)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def open(self) -> None:
        if self._conn is not None:
            return
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        conn.executescript(SCHEMA_PATH.read_text(encoding="utf-8"))
        conn.commit()
        self._conn = conn

    def close(self) -> None:
        if self._conn is None:
            return
        with self._lock:
            self._conn.close()
            self._conn = None

    async def __aenter__(self) -> Database:
        self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run a write statement and return the last inserted row id."""
        return await asyncio.to_thread(self._execute, sql, params)

    async def fetchone(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Row | None:
        rows = await asyncio.to_thread(self._fetch, sql, params, 1)
        return rows[0] if rows else None

    async def fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        return await asyncio.to_thread(self._fetch, sql, params, None)

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Database is not open")
        return self._conn

    def _execute(self, sql: str, params: Sequence[Any]) -> int:
        with self._lock:
            conn = self._connection()
            cursor = conn.execute(sql, tuple(params))
            conn.commit()
            return int(cursor.lastrowid or 0)

    def _fetch(self, sql: str, params: Sequence[Any], limit: int | None) -> list[sqlite3.Row]:
        with self._lock:
            cursor = self._connection().execute(sql, tuple(params))
            if limit is None:
                return cursor.fetchall()
            return cursor.fetchmany(limit)
