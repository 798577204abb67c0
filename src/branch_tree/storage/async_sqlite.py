"""Async SQLite branch record storage backend — requires aiosqlite.

The backend owns exactly one table (``branches`` by default) and creates it
with ``CREATE TABLE IF NOT EXISTS``, so it can share a database file with
unrelated record kinds without touching them.

Classes
-------
- AsyncSQLiteBackend  — aiosqlite-backed async record storage
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Sequence

from branch_tree.storage.async_base import AsyncStorageBackend

_AIOSQLITE_IMPORT_ERROR = (
    "AsyncSQLiteBackend requires the 'aiosqlite' package. "
    "Install it with: pip install aiosqlite"
)

_DEFAULT_DB_PATH: Path = Path.home() / ".branch-tree" / "branches.db"
_DEFAULT_TABLE = "branches"
_TABLE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS {table} (
    id       TEXT PRIMARY KEY,
    payload  TEXT NOT NULL,
    saved_at TEXT NOT NULL DEFAULT (datetime('now'))
)
"""

_UPSERT_SQL = """
INSERT INTO {table} (id, payload, saved_at)
VALUES (?, ?, datetime('now'))
ON CONFLICT(id) DO UPDATE SET
    payload  = excluded.payload,
    saved_at = excluded.saved_at
"""


class AsyncSQLiteBackend(AsyncStorageBackend):
    """Persists branch records in a local SQLite database using aiosqlite.

    Parameters
    ----------
    db_path:
        Path to the SQLite file.  Defaults to ``~/.branch-tree/branches.db``.
        The parent directory and table are created on first use.
    table:
        Table holding the records.  Must be a plain SQL identifier.

    Raises
    ------
    ImportError
        If ``aiosqlite`` is not installed.
    ValueError
        If ``table`` is not a valid identifier.
    """

    def __init__(self, db_path: str | Path | None = None, table: str = _DEFAULT_TABLE) -> None:
        try:
            import aiosqlite as _aiosqlite  # noqa: F401
        except ImportError as exc:
            raise ImportError(_AIOSQLITE_IMPORT_ERROR) from exc

        if not _TABLE_NAME_RE.match(table):
            raise ValueError(f"Invalid table name {table!r}.")

        self._db_path: Path = Path(db_path) if db_path is not None else _DEFAULT_DB_PATH
        self._table = table
        self._schema_initialised = False

    @property
    def db_path(self) -> Path:
        return self._db_path

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _ensure_schema(self) -> None:
        """Create the record table on first use."""
        if self._schema_initialised:
            return
        import aiosqlite

        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as conn:
            await conn.execute("PRAGMA journal_mode=WAL")
            await conn.execute(_CREATE_TABLE_SQL.format(table=self._table))
            await conn.commit()
        self._schema_initialised = True

    # ------------------------------------------------------------------
    # AsyncStorageBackend interface
    # ------------------------------------------------------------------

    async def save(self, key: str, payload: str) -> None:
        """Upsert ``payload`` for ``key``."""
        import aiosqlite

        await self._ensure_schema()
        async with aiosqlite.connect(str(self._db_path)) as conn:
            await conn.execute(_UPSERT_SQL.format(table=self._table), (key, payload))
            await conn.commit()

    async def load(self, key: str) -> str:
        """Return the payload row for ``key``.

        Raises
        ------
        KeyError
            If no row exists for ``key``.
        """
        import aiosqlite

        await self._ensure_schema()
        async with aiosqlite.connect(str(self._db_path)) as conn:
            async with conn.execute(
                f"SELECT payload FROM {self._table} WHERE id = ?", (key,)
            ) as cursor:
                row = await cursor.fetchone()

        if row is None:
            raise KeyError(f"Record {key!r} not found in AsyncSQLiteBackend.")
        return str(row[0])

    async def list_keys(self) -> Sequence[str]:
        import aiosqlite

        await self._ensure_schema()
        async with aiosqlite.connect(str(self._db_path)) as conn:
            async with conn.execute(f"SELECT id FROM {self._table} ORDER BY id") as cursor:
                rows = await cursor.fetchall()
        return [str(row[0]) for row in rows]

    async def delete(self, key: str) -> bool:
        import aiosqlite

        await self._ensure_schema()
        async with aiosqlite.connect(str(self._db_path)) as conn:
            cursor = await conn.execute(f"DELETE FROM {self._table} WHERE id = ?", (key,))
            await conn.commit()
        return cursor.rowcount > 0

    async def exists(self, key: str) -> bool:
        import aiosqlite

        await self._ensure_schema()
        async with aiosqlite.connect(str(self._db_path)) as conn:
            async with conn.execute(
                f"SELECT 1 FROM {self._table} WHERE id = ?", (key,)
            ) as cursor:
                row = await cursor.fetchone()
        return row is not None

    async def load_all(self) -> dict[str, str]:
        import aiosqlite

        await self._ensure_schema()
        async with aiosqlite.connect(str(self._db_path)) as conn:
            async with conn.execute(f"SELECT id, payload FROM {self._table}") as cursor:
                rows = await cursor.fetchall()
        return {str(row[0]): str(row[1]) for row in rows}

    async def clear(self) -> None:
        import aiosqlite

        await self._ensure_schema()
        async with aiosqlite.connect(str(self._db_path)) as conn:
            await conn.execute(f"DELETE FROM {self._table}")
            await conn.commit()

    def __repr__(self) -> str:
        return f"AsyncSQLiteBackend(db_path={str(self._db_path)!r}, table={self._table!r})"


__all__ = ["AsyncSQLiteBackend"]
