"""
SQLite-backed record store (default backend).

One application-private database file holds the `users` table. Each operation
opens its own short-lived connection, so the store can be used from worker
threads (the synchronizer and query stream call it via `asyncio.to_thread`).
Writes run inside `BEGIN IMMEDIATE ... COMMIT`; any failure rolls the whole
batch back before `StorageError` is raised.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, List, Optional

from directory_sync.domain.errors import StorageError
from directory_sync.domain.models import Record
from directory_sync.infrastructure.db_factory import open_sqlite_connection
from directory_sync.stores.abstract import AbstractRecordStore
from directory_sync.utils.logging import get_logger

log = get_logger(__name__)

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id    INTEGER PRIMARY KEY,
        name  TEXT NOT NULL,
        email TEXT NOT NULL DEFAULT '',
        phone TEXT NOT NULL DEFAULT ''
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_users_name ON users (name, id)",
)

_COLUMNS = "id, name, email, phone"
_ORDER = "ORDER BY name COLLATE BINARY ASC, id ASC"
# The driver raises OverflowError/ValueError for parameters SQLite cannot bind.
_DRIVER_ERRORS = (sqlite3.Error, OverflowError, ValueError)


def _casefold(value: Optional[str]) -> Optional[str]:
    # SQLite's own lower()/LIKE only fold ASCII.
    return value.casefold() if value is not None else None


class SqliteRecordStore(AbstractRecordStore):
    """
    Record store persisted in a single SQLite file.

    Parameters
    ----------
    path : Path | str
        Database file location; created (with parent directories) if missing.
    """

    name: str = "sqlite"

    def __init__(self, path: Path | str) -> None:
        super().__init__()
        self.path = Path(path)
        self._init_schema()

    @contextmanager
    def _connect(self) -> Generator[sqlite3.Connection, None, None]:
        try:
            conn = open_sqlite_connection(self.path, functions={"py_casefold": _casefold})
        except (sqlite3.Error, OSError) as exc:
            raise StorageError(f"Cannot open {self.path}: {exc}", details={"path": str(self.path)}) from exc
        try:
            yield conn
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._connect() as conn:
            try:
                for statement in SCHEMA:
                    conn.execute(statement)
            except sqlite3.Error as exc:
                raise StorageError(f"Schema initialization failed: {exc}") from exc

    def _write_batch(self, records: List[Record]) -> None:
        sql = (
            f"INSERT INTO users ({_COLUMNS}) VALUES (?, ?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET "
            "name = excluded.name, email = excluded.email, phone = excluded.phone"
        )
        rows = [(r.id, r.name, r.email, r.phone) for r in records]
        with self._connect() as conn:
            try:
                conn.execute("BEGIN IMMEDIATE")
                conn.executemany(sql, rows)
                conn.execute("COMMIT")
            except _DRIVER_ERRORS as exc:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                log.debug("Batch write failed, rolled back", extra={"count": len(rows)})
                raise StorageError(
                    f"Upsert of {len(rows)} records failed: {exc}",
                    details={"path": str(self.path), "count": len(rows)},
                ) from exc

    def _select(self, sql: str, params: tuple = ()) -> List[Record]:
        with self._connect() as conn:
            try:
                rows = conn.execute(sql, params).fetchall()
            except _DRIVER_ERRORS as exc:
                raise StorageError(f"Query failed: {exc}", details={"path": str(self.path)}) from exc
        return [Record(id=row["id"], name=row["name"], email=row["email"], phone=row["phone"]) for row in rows]

    def query_all(self) -> List[Record]:
        return self._select(f"SELECT {_COLUMNS} FROM users {_ORDER}")

    def _search(self, text: str) -> List[Record]:
        needle = text.casefold()
        return self._select(
            f"SELECT {_COLUMNS} FROM users "
            "WHERE instr(py_casefold(name), ?) > 0 OR instr(py_casefold(email), ?) > 0 "
            f"{_ORDER}",
            (needle, needle),
        )

    def get(self, record_id: int) -> Optional[Record]:
        found = self._select(f"SELECT {_COLUMNS} FROM users WHERE id = ?", (record_id,))
        return found[0] if found else None

    def count(self) -> int:
        with self._connect() as conn:
            try:
                return int(conn.execute("SELECT COUNT(*) FROM users").fetchone()[0])
            except sqlite3.Error as exc:
                raise StorageError(f"Count failed: {exc}") from exc


__all__ = ["SqliteRecordStore"]
