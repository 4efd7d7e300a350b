"""
PostgreSQL-backed record store.

Uses a psycopg `ConnectionPool` owned by the store instance. Upserts run as a
single `INSERT ... ON CONFLICT (id) DO UPDATE` batch inside one transaction;
the search folds case with `lower()`, so non-ASCII matching follows the
database locale and never expands letters the way the SQLite store's
`casefold` does (`ß` does not match `SS` here).
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence

import psycopg
from psycopg.rows import dict_row

from directory_sync.domain.errors import StorageError
from directory_sync.domain.models import Record
from directory_sync.infrastructure.db_factory import PoolManager, get_sync_connection
from directory_sync.stores.abstract import AbstractRecordStore
from directory_sync.utils.logging import get_logger

log = get_logger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS public.users (
    id    BIGINT PRIMARY KEY,
    name  TEXT NOT NULL,
    email TEXT NOT NULL DEFAULT '',
    phone TEXT NOT NULL DEFAULT ''
);
CREATE INDEX IF NOT EXISTS idx_users_name ON public.users (name COLLATE "C", id);
"""

_COLUMNS = "id, name, email, phone"
_ORDER = 'ORDER BY name COLLATE "C" ASC, id ASC'
_DRIVER_ERRORS = (psycopg.Error, OverflowError, ValueError)


class PostgresRecordStore(AbstractRecordStore):
    """
    Record store persisted in a PostgreSQL `users` table.

    Parameters
    ----------
    dsn : str, optional
        Connection string; defaults to the one built from settings.
    pool_min_size, pool_max_size : int
        Connection pool bounds.
    """

    name: str = "postgres"

    def __init__(
        self,
        dsn: Optional[str] = None,
        pool_min_size: int = 1,
        pool_max_size: int = 4,
    ) -> None:
        super().__init__()
        self._pool = PoolManager(dsn=dsn, min_size=pool_min_size, max_size=pool_max_size)
        self._init_schema()

    def _init_schema(self) -> None:
        try:
            conn = get_sync_connection(self._pool.dsn)
        except psycopg.Error as exc:
            raise StorageError(f"Cannot connect to PostgreSQL: {exc}") from exc
        try:
            with conn.transaction():
                conn.execute(SCHEMA_SQL)
        except psycopg.Error as exc:
            raise StorageError(f"Schema initialization failed: {exc}") from exc
        finally:
            conn.close()

    def _write_batch(self, records: List[Record]) -> None:
        sql = (
            f"INSERT INTO public.users ({_COLUMNS}) VALUES (%s, %s, %s, %s) "
            "ON CONFLICT (id) DO UPDATE SET "
            "name = EXCLUDED.name, email = EXCLUDED.email, phone = EXCLUDED.phone"
        )
        rows = [(r.id, r.name, r.email, r.phone) for r in records]
        try:
            with self._pool.connection() as conn:
                with conn.transaction():
                    with conn.cursor() as cur:
                        cur.executemany(sql, rows)
        except _DRIVER_ERRORS as exc:
            log.debug("Batch write failed, rolled back", extra={"count": len(rows)})
            raise StorageError(
                f"Upsert of {len(rows)} records failed: {exc}",
                details={"count": len(rows)},
            ) from exc

    def _select(self, sql: str, params: Sequence[Any] = ()) -> List[Record]:
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=dict_row) as cur:
                    cur.execute(sql, params)
                    rows = cur.fetchall()
        except _DRIVER_ERRORS as exc:
            raise StorageError(f"Query failed: {exc}") from exc
        return [Record(**row) for row in rows]

    def query_all(self) -> List[Record]:
        return self._select(f"SELECT {_COLUMNS} FROM public.users {_ORDER}")

    def _search(self, text: str) -> List[Record]:
        return self._select(
            f"SELECT {_COLUMNS} FROM public.users "
            "WHERE strpos(lower(name), lower(%s)) > 0 OR strpos(lower(email), lower(%s)) > 0 "
            f"{_ORDER}",
            (text, text),
        )

    def get(self, record_id: int) -> Optional[Record]:
        found = self._select(f"SELECT {_COLUMNS} FROM public.users WHERE id = %s", (record_id,))
        return found[0] if found else None

    def count(self) -> int:
        try:
            with self._pool.connection() as conn:
                row = conn.execute("SELECT COUNT(*) FROM public.users").fetchone()
        except psycopg.Error as exc:
            raise StorageError(f"Count failed: {exc}") from exc
        return int(row[0]) if row else 0

    def truncate(self) -> None:
        """Remove every row. Test and maintenance helper; does not notify listeners."""
        try:
            with self._pool.connection() as conn:
                conn.execute("TRUNCATE TABLE public.users")
        except psycopg.Error as exc:
            raise StorageError(f"Truncate failed: {exc}") from exc

    def close(self) -> None:
        super().close()
        self._pool.close()


__all__ = ["PostgresRecordStore"]
